import os
from dotenv import load_dotenv

load_dotenv()


def _parse_csv_env(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    values = [x.strip() for x in raw.split(",") if x.strip()]
    seen = set()
    ordered = []
    for item in values:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def _flag(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "1" if default else "0")).strip().lower()
    return raw in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    # Bad values fall back here; startup_env reports them before a run starts.
    try:
        return int(str(os.getenv(name, default)).strip())
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(str(os.getenv(name, default)).strip())
    except ValueError:
        return default


URL = (os.environ.get("URL") or "").strip() or None
RECOGNIZER_FACTORY = (os.environ.get("RECOGNIZER_FACTORY") or "").strip() or None
TRANSLATORS = _parse_csv_env("TRANSLATORS", "tesseract,opencv")
CHECKS_DIR = os.environ.get("CHECKS_DIR") or os.path.join(os.path.expanduser("~"), ".fin-ocr", "checks")
CHECK_EVAL_DATA = (os.environ.get("CHECK_EVAL_DATA") or "").strip() or None
CONCURRENCY = _int_env("CONCURRENCY", 25)
REMOTE_TIMEOUT_SEC = _float_env("REMOTE_TIMEOUT_SEC", 60.0)
SHOW_MATCHES = _flag("SHOW_MATCHES", False)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
