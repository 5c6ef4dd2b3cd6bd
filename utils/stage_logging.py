# User value: This file gives every check one grep-able trail from scan request to comparison verdict.
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict

from utils.correlation import get_correlation_id

logger = logging.getLogger("check.stage")

CHECK_SCAN = "CHECK_SCAN"
CHECK_COMPARE = "CHECK_COMPARE"
REMOTE_SCAN = "REMOTE_SCAN"
STAGES = frozenset({CHECK_SCAN, CHECK_COMPARE, REMOTE_SCAN})

# (correlation id, check id, stage) -> perf_counter at STARTED
_started: Dict[tuple, float] = {}


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    if hasattr(value, "value"):
        return _plain(value.value)
    return str(value)


def log_stage(
    *,
    check_id: Any,
    stage: str,
    event: str,
    source: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Emit one JSON ``stage_event`` line for a check.

    COMPLETED and FAILED events carry ``duration_ms`` since the matching
    STARTED event in the same correlation context.
    """
    if stage not in STAGES:
        raise ValueError(f"Unknown stage {stage!r}")
    event = event.upper()
    correlation_id = get_correlation_id()
    key = (correlation_id, str(check_id), stage)

    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "check_id": str(check_id),
        "stage": stage,
        "event": event,
    }
    if correlation_id:
        payload["correlation_id"] = correlation_id
    if source:
        payload["source"] = source
    if error:
        payload["error"] = error

    if event == "STARTED":
        _started[key] = time.perf_counter()
    else:
        started = _started.pop(key, None)
        if started is not None:
            payload["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 1)

    for name, value in extra.items():
        plain = _plain(value)
        if plain is not None:
            payload[name] = plain

    msg = json.dumps(payload, ensure_ascii=False)
    if error or event == "FAILED":
        logger.error("stage_event %s", msg)
    else:
        logger.info("stage_event %s", msg)
