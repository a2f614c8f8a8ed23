"""
Account Cleanup - Utilities
"""

from .concurrency import map_bounded
from .trigger_auth import extract_trigger_secret, secrets_match
from .timeutils import as_utc, utc_now

__all__ = [
    "map_bounded",
    "extract_trigger_secret",
    "secrets_match",
    "as_utc",
    "utc_now",
]
