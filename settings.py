import logging
import os
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv

load_dotenv()

# --- Store ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///finance_tracker.db")
DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "10"))
STORAGE_RETRIES = int(os.getenv("STORAGE_RETRIES", "1"))
STORAGE_BACKOFF_SECONDS = float(os.getenv("STORAGE_BACKOFF_SECONDS", "0.5"))

# --- Budget ---
# All day boundaries are computed in one fixed offset, never host-local time.
TZ_OFFSET_HOURS = float(os.getenv("BUDGET_TZ_OFFSET_HOURS", "8"))
LIMIT_POLICIES = ("carry_forward", "clamp")


def validate_limit_policy(value: str) -> str:
    policy = (value or "").strip().lower()
    if policy not in LIMIT_POLICIES:
        raise ValueError(
            f"BUDGET_LIMIT_POLICY must be one of {', '.join(LIMIT_POLICIES)}, got {value!r}"
        )
    return policy


LIMIT_POLICY = validate_limit_policy(os.getenv("BUDGET_LIMIT_POLICY", "carry_forward"))

# --- API ---
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "3000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def reference_tz(offset_hours: float = TZ_OFFSET_HOURS) -> timezone:
    return timezone(timedelta(hours=offset_hours))


def local_now(tz: timezone | None = None) -> datetime:
    """Current instant expressed in the reference timezone."""
    return datetime.now(tz or reference_tz())


def setup_logging(level: str | int = LOG_LEVEL) -> logging.Logger:
    """
    Configure the root logger with a single console handler.

    Safe to call more than once; an existing handler is reused.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root.addHandler(handler)
    return root
