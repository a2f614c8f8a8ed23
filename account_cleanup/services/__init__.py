"""
Account Cleanup - Services

Business logic layer.
"""

from .cleanup_report import RunReport, CandidateOutcome
from .cleanup_service import (
    AccountCleanupJob,
    CleanupPreconditionError,
    UnauthorizedTriggerError,
    CleanupNotConfiguredError,
    CleanupAlreadyRunningError,
    authorize_trigger,
    run_account_cleanup,
)
from .email_service import EmailTransport, EmailDeliveryError, get_email_transport
from .billing_service import StripeBillingClient, get_billing_client

__all__ = [
    "RunReport",
    "CandidateOutcome",
    "AccountCleanupJob",
    "CleanupPreconditionError",
    "UnauthorizedTriggerError",
    "CleanupNotConfiguredError",
    "CleanupAlreadyRunningError",
    "authorize_trigger",
    "run_account_cleanup",
    "EmailTransport",
    "EmailDeliveryError",
    "get_email_transport",
    "StripeBillingClient",
    "get_billing_client",
]
