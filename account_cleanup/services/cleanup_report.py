"""
Cleanup run report.

The report is an accumulator threaded through every phase of a run.
Per-candidate steps return a ``CandidateOutcome`` instead of raising, and
the caller folds outcomes into the report so one bad record never stops
the batch.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..models.schemas import CleanupRunResponse


@dataclass
class CandidateOutcome:
    """Tagged result of processing one candidate."""

    account_id: str
    ok: bool
    error: Optional[str] = None
    skipped: bool = False

    @classmethod
    def success(cls, account_id: str) -> "CandidateOutcome":
        return cls(account_id=account_id, ok=True)

    @classmethod
    def failure(cls, account_id: str, message: str) -> "CandidateOutcome":
        return cls(account_id=account_id, ok=False, error=message)

    @classmethod
    def skip(cls, account_id: str) -> "CandidateOutcome":
        return cls(account_id=account_id, ok=False, skipped=True)


@dataclass
class RunReport:
    run_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    reminders_sent: int = 0
    reminder_breakdown: Dict[str, int] = field(default_factory=dict)
    accounts_deleted: int = 0
    stripe_subscriptions_cancelled: int = 0
    errors: List[str] = field(default_factory=list)
    _started: float = field(default_factory=time.monotonic, repr=False)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def record_reminder(self, window_days: int) -> None:
        self.reminders_sent += 1
        key = str(window_days)
        self.reminder_breakdown[key] = self.reminder_breakdown.get(key, 0) + 1

    def record_cancellation(self) -> None:
        self.stripe_subscriptions_cancelled += 1

    def record_deletion(self) -> None:
        self.accounts_deleted += 1

    @property
    def duration_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def to_response(self) -> CleanupRunResponse:
        return CleanupRunResponse(
            run_at=self.run_at.isoformat(),
            duration_ms=self.duration_ms,
            reminders_sent=self.reminders_sent,
            reminder_breakdown=dict(self.reminder_breakdown),
            accounts_deleted=self.accounts_deleted,
            stripe_subscriptions_cancelled=self.stripe_subscriptions_cancelled,
            errors=list(self.errors),
        )


def error_message(error: BaseException) -> str:
    """Best human-readable message for an exception."""
    return str(error) or error.__class__.__name__
