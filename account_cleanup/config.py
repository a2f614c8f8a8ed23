"""
Account Cleanup - Configuration

Runtime settings read from the environment once per process.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import lru_cache
from typing import List, Optional

DEFAULT_REMINDER_WINDOWS = [7, 1]
DEFAULT_GRACE_PERIOD_DAYS = 14


def parse_positive_int(value: Optional[str], default: int, min_value: int = 1) -> int:
    """Parse an integer env value, clamping to ``min_value`` and falling back to ``default``."""
    try:
        parsed = int((value or "").strip())
    except ValueError:
        return default
    return max(parsed, min_value)


def parse_reminder_windows(value: Optional[str], defaults: Optional[List[int]] = None) -> List[int]:
    """
    Parse a comma-separated list of day offsets.

    Negative and non-numeric pieces are dropped. The result is de-duplicated
    and sorted ascending; an empty result falls back to ``defaults``.
    """
    parsed = []
    for piece in (value or "").split(","):
        try:
            days = int(piece.strip())
        except ValueError:
            continue
        if days >= 0:
            parsed.append(days)

    if not parsed:
        parsed = list(defaults if defaults is not None else DEFAULT_REMINDER_WINDOWS)

    return sorted(set(parsed))


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values exposed to FastAPI components and jobs."""

    app_name: str = os.getenv("APP_NAME", "Account Cleanup Service")
    app_version: str = "0.1.0"
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = _env_bool("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = parse_positive_int(os.getenv("PORT"), 8000)

    database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./account_cleanup.db")

    # Trigger authorization
    cron_secret: str = os.getenv("CRON_SECRET", "").strip()

    # Reminder content
    product_name: str = os.getenv("PRODUCT_NAME", "Athletics Dashboard")
    app_url: str = os.getenv("APP_URL", "http://localhost:3000")
    email_from: str = os.getenv("EMAIL_FROM", "AD Hub <noreply@yourdomain.com>")
    resend_api_key: str = os.getenv("RESEND_API_KEY", "").strip()

    # Billing
    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "").strip()

    # Lifecycle windows
    grace_period_days: int = parse_positive_int(
        os.getenv("ACCOUNT_DELETION_GRACE_DAYS"), DEFAULT_GRACE_PERIOD_DAYS
    )
    reminder_windows: List[int] = field(
        default_factory=lambda: parse_reminder_windows(os.getenv("ACCOUNT_DELETION_REMINDER_DAYS"))
    )

    # Run control
    cleanup_concurrency: int = parse_positive_int(os.getenv("ACCOUNT_CLEANUP_CONCURRENCY"), 1)
    cleanup_lock_ttl_seconds: int = parse_positive_int(
        os.getenv("ACCOUNT_CLEANUP_LOCK_TTL_SECONDS"), 900
    )
    cleanup_loop_enabled: bool = _env_bool("ACCOUNT_CLEANUP_LOOP_ENABLED")
    cleanup_interval_seconds: int = parse_positive_int(
        os.getenv("ACCOUNT_CLEANUP_INTERVAL_SECONDS"), 6 * 3600
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()


def calculate_deletion_deadline(
    cancellation_date: datetime,
    grace_period_days: Optional[int] = None,
) -> datetime:
    """Return the moment an account cancelled at ``cancellation_date`` becomes deletable."""
    grace_days = grace_period_days if grace_period_days is not None else get_settings().grace_period_days
    return cancellation_date + timedelta(days=grace_days)
