import logging
import os
from typing import List

logger = logging.getLogger("check.startup")

_BOOL_VALUES = {"1", "0", "true", "false", "yes", "no", "on", "off"}


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _validate_url(value: str | None, key: str, errors: List[str]) -> None:
    if _is_blank(value):
        return
    if not (value.startswith("http://") or value.startswith("https://")):
        errors.append(f"{key} must start with http:// or https://")


def _validate_positive_int_env(key: str, errors: List[str]) -> None:
    raw = os.getenv(key)
    if _is_blank(raw):
        return
    try:
        value = int(str(raw).strip())
    except ValueError:
        errors.append(f"{key} must be an integer, got {raw!r}")
        return
    if value < 1:
        errors.append(f"{key} must be >= 1, got {value}")


def _validate_positive_float_env(key: str, errors: List[str]) -> None:
    raw = os.getenv(key)
    if _is_blank(raw):
        return
    try:
        value = float(str(raw).strip())
    except ValueError:
        errors.append(f"{key} must be a number, got {raw!r}")
        return
    if value <= 0:
        errors.append(f"{key} must be > 0, got {value}")


def _validate_bool_flag_env(key: str, errors: List[str]) -> None:
    raw = os.getenv(key)
    if _is_blank(raw):
        return
    if str(raw).strip().lower() not in _BOOL_VALUES:
        errors.append(f"{key} must be one of {sorted(_BOOL_VALUES)}, got {raw!r}")


def _validate_ledger_path(value: str | None, errors: List[str]) -> None:
    if _is_blank(value):
        return
    if not os.path.isfile(value):
        errors.append(f"CHECK_EVAL_DATA file does not exist: {value}")


def validate_startup_env(*, require_local_recognizer: bool = False) -> None:
    """Fail fast on configuration that would break a run part-way through.

    ``require_local_recognizer`` is set by the recognition service, which must
    host engines itself rather than delegate to another URL.
    """
    errors: List[str] = []
    warnings: List[str] = []

    url = os.getenv("URL")
    factory = os.getenv("RECOGNIZER_FACTORY")

    if require_local_recognizer:
        if _is_blank(factory):
            errors.append("RECOGNIZER_FACTORY is required to serve scans")
    elif _is_blank(url) and _is_blank(factory):
        errors.append("URL or RECOGNIZER_FACTORY is required")

    _validate_url(url, "URL", errors)
    _validate_positive_int_env("CONCURRENCY", errors)
    _validate_positive_float_env("REMOTE_TIMEOUT_SEC", errors)
    _validate_bool_flag_env("SHOW_MATCHES", errors)
    _validate_ledger_path(os.getenv("CHECK_EVAL_DATA"), errors)

    checks_dir = os.getenv("CHECKS_DIR")
    if not _is_blank(checks_dir) and not os.path.isdir(checks_dir):
        warnings.append(f"CHECKS_DIR does not exist: {checks_dir}")
    if _is_blank(os.getenv("CHECK_EVAL_DATA")):
        warnings.append("CHECK_EVAL_DATA is not set; every mismatch will be flagged for evaluation")

    if errors:
        for err in errors:
            logger.error("startup_env_invalid %s", err)
        raise RuntimeError("Startup env validation failed: " + "; ".join(errors))

    for warning in warnings:
        logger.warning("startup_env_warning %s", warning)

    logger.info(
        "startup_env_validated keys=%s",
        ["URL", "RECOGNIZER_FACTORY", "CONCURRENCY", "CHECKS_DIR", "CHECK_EVAL_DATA"],
    )
