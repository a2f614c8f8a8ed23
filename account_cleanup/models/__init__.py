"""
Account Cleanup - Models

Database models and Pydantic schemas.
"""

from .db_models import (
    Organization,
    Account,
    Subscription,
    SubscriptionStatus,
    ReminderLedgerEntry,
    JobLock,
)
from .schemas import (
    CleanupRunResponse,
    ErrorResponse,
    CandidatePreview,
    HealthResponse,
)

__all__ = [
    # Database models
    "Organization",
    "Account",
    "Subscription",
    "SubscriptionStatus",
    "ReminderLedgerEntry",
    "JobLock",

    # Cleanup schemas
    "CleanupRunResponse",
    "ErrorResponse",
    "CandidatePreview",

    # Health
    "HealthResponse",
]
