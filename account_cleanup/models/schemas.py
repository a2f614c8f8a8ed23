"""
Account Cleanup - Pydantic Schemas

Response models for the cleanup trigger and health endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional


class CleanupRunResponse(BaseModel):
    """Report of one cleanup run, serialised with camelCase keys"""

    model_config = ConfigDict(populate_by_name=True)

    run_at: str = Field(..., alias="runAt")
    duration_ms: int = Field(..., ge=0, alias="durationMs")
    reminders_sent: int = Field(0, ge=0, alias="remindersSent")
    reminder_breakdown: Dict[str, int] = Field(default_factory=dict, alias="reminderBreakdown")
    accounts_deleted: int = Field(0, ge=0, alias="accountsDeleted")
    stripe_subscriptions_cancelled: int = Field(0, ge=0, alias="stripeSubscriptionsCancelled")
    errors: List[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Body returned when a run is refused before doing any work"""

    error: str


class CandidatePreview(BaseModel):
    """A reminder or deletion candidate, as listed by a dry run"""

    account_id: str
    email: Optional[str] = None
    deletion_scheduled_at: Optional[str] = None
    window_days: Optional[int] = None
    stripe_subscription_id: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = "ok"
    version: str
    timestamp: str
