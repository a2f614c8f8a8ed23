"""
Account Cleanup - Trigger secret helpers

The cleanup endpoint is called by a scheduler, not a user, so it is
guarded by a shared secret instead of a session token.
"""

import secrets
from typing import Mapping, Optional

CRON_SECRET_HEADER = "x-cron-secret"


def extract_trigger_secret(headers: Mapping[str, str]) -> Optional[str]:
    """
    Pull the shared secret out of request headers.

    ``x-cron-secret`` wins; otherwise the ``Authorization`` header is used,
    with or without a ``Bearer`` prefix.
    """
    header = (headers.get(CRON_SECRET_HEADER) or "").strip()
    if header:
        return header

    authorization = (headers.get("authorization") or "").strip()
    if not authorization:
        return None

    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()

    return authorization


def secrets_match(provided: Optional[str], expected: str) -> bool:
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
