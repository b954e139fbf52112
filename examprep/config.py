"""Application configuration and constants."""
import os
from decimal import Decimal
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float_env(name: str, default: float) -> float:
    """Parse float from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Remote data service
DEFAULT_API_BASE_URL = "https://autonline-backend-production.up.railway.app"
API_BASE_URL = os.environ.get("EXAMPREP_API_BASE_URL", "").strip() or DEFAULT_API_BASE_URL
ACCESS_TOKEN = os.environ.get("EXAMPREP_ACCESS_TOKEN") or None
REQUEST_TIMEOUT_SECONDS = _parse_float_env("EXAMPREP_REQUEST_TIMEOUT", 30.0)

# Locales: UI language code -> question data locale
SUPPORTED_LOCALES = ("uz", "oz", "ru")
DEFAULT_LOCALE = "uz"
UI_LANGUAGE_TO_LOCALE = {"uz": "uz", "cyr": "oz", "ru": "ru"}

# Lesson cache
CACHE_TTL_SECONDS = _parse_int_env("EXAMPREP_CACHE_TTL_SECONDS", 10 * 60)
LESSON_CACHE_PREFIX = "lesson_data_"

# Tab-scoped storage (in-memory SQLite by default)
STORAGE_URL = os.environ.get("EXAMPREP_STORAGE_URL", "sqlite://")
STORAGE_QUOTA_BYTES = _parse_int_env("EXAMPREP_STORAGE_QUOTA_BYTES", 5 * 1024 * 1024)

# Images
IMAGE_CACHE_DIR = Path(
    os.environ.get("EXAMPREP_IMAGE_CACHE_DIR", Path.cwd() / "data" / "images")
)
IMAGE_PROBE_TIMEOUT_SECONDS = _parse_float_env("EXAMPREP_IMAGE_PROBE_TIMEOUT", 2.0)

# Quiz rules
AUTO_ADVANCE_DELAY_MS = _parse_int_env("EXAMPREP_AUTO_ADVANCE_MS", 1500)
# Finished sessions are dropped from the registry after this long
FINISHED_SESSION_TTL_SECONDS = _parse_int_env("EXAMPREP_FINISHED_SESSION_TTL_SECONDS", 30 * 60)
PASS_THRESHOLD_PERCENT = 70
MINUTES_PER_QUESTION = Decimal("1.2")
RANDOM_QUIZ_MIN_QUESTIONS = 5
RANDOM_QUIZ_MAX_QUESTIONS = 100
RANDOM_QUIZ_LESSON_ID = 43

# Local server
SERVER_HOST = os.environ.get("EXAMPREP_HOST", "127.0.0.1")
SERVER_PORT = _parse_int_env("EXAMPREP_PORT", 8000)
LOG_LEVEL = os.environ.get("EXAMPREP_LOG_LEVEL", "INFO")
