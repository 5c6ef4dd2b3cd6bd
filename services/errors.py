# User value: This file gives operators distinct failure types so a broken check, engine, or ledger is reported for what it is.


class GroundTruthError(ValueError):
    """Ground truth for a check is missing or malformed."""

    def __init__(self, check_id, message: str):
        self.check_id = check_id
        super().__init__(f"check {check_id}: {message}")


class RecognitionError(RuntimeError):
    """The recognition collaborator (local or remote) failed."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class LedgerConfigError(RuntimeError):
    """The evaluation ledger document could not be read or parsed."""
