# User value: This file loads the reviewers' evaluation ledger once per run so known failures are not re-flagged.
import logging
from typing import Optional

from pydantic import ValidationError

from schemas.ledger import EvaluationLedger
from services.errors import LedgerConfigError

logger = logging.getLogger("check.ledger")


def load_ledger(path: Optional[str]) -> EvaluationLedger:
    if not path:
        logger.info("ledger_not_configured using_empty_ledger=true")
        return EvaluationLedger()

    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = fh.read()
    except OSError as exc:
        raise LedgerConfigError(f"Failed reading {path}: {exc}") from exc

    try:
        ledger = EvaluationLedger.model_validate_json(raw)
    except ValidationError as exc:
        raise LedgerConfigError(f"Failed parsing {path}: {exc}") from exc

    logger.info(
        "ledger_loaded path=%s reasons=%s evaluated=%s overrides=%s",
        path,
        len(ledger.mismatchesByReason),
        len(ledger.evaluated_ids()),
        len(ledger.correctX9),
    )
    return ledger
