"""
Deletion reminder phase.

For every configured window (days before deletion) find the accounts whose
deletion falls in that window's one-day bucket and that have not been
reminded for it yet, email them, and record the send in the reminder
ledger. The ledger, not the bucket, is what guarantees a single email per
account and window.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..config import Settings
from ..models.db_models import Account, ReminderLedgerEntry, Subscription
from ..utils.concurrency import map_bounded
from ..utils.timeutils import DAY, as_utc
from .cleanup_report import CandidateOutcome, RunReport, error_message
from .email_service import EmailTransport
from .email_templates import (
    get_deletion_reminder_subject,
    get_deletion_reminder_email_html,
    get_deletion_reminder_email_text,
)

logger = logging.getLogger(__name__)


@dataclass
class ReminderCandidate:
    account_id: str
    email: Optional[str]
    name: Optional[str]
    deletion_scheduled_at: Optional[datetime]
    organization_name: Optional[str] = None
    timezone: Optional[str] = None


def get_window_bounds(now: datetime, window_days: int) -> Tuple[datetime, datetime]:
    """
    Half-open ``[start, end)`` bucket for a reminder window.

    Window ``w`` covers deletions between ``w-1`` and ``w`` days from now.
    Window 0 covers the next 24 hours, since deletion times never line up
    exactly with the job's run time.
    """
    start = now + max(window_days - 1, 0) * DAY
    end = now + (window_days + (1 if window_days == 0 else 0)) * DAY
    return start, end


def get_countdown_label(window_days: int) -> str:
    if window_days <= 0:
        return "less than 24 hours"
    if window_days == 1:
        return "1 day"
    return f"{window_days} days"


def format_deletion_date(value: datetime, timezone_name: Optional[str] = None) -> str:
    """Format like ``Friday, March 6, 2026 at 2:30 PM`` in the given timezone."""
    value = as_utc(value)
    try:
        local = value.astimezone(ZoneInfo(timezone_name or "UTC"))
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error("Failed to format date with timezone %s: %s", timezone_name, e)
        return value.isoformat()

    hour = local.hour % 12 or 12
    return (
        f"{local:%A}, {local:%B} {local.day}, {local.year} "
        f"at {hour}:{local:%M} {'AM' if local.hour < 12 else 'PM'}"
    )


async def find_reminder_candidates(
    db: AsyncSession,
    window_days: int,
    now: datetime,
) -> List[ReminderCandidate]:
    """Accounts due a reminder for ``window_days`` that have not had one yet."""
    start, end = get_window_bounds(now, window_days)

    already_reminded = exists().where(
        ReminderLedgerEntry.account_id == Account.id,
        ReminderLedgerEntry.days_before_deletion == window_days,
    )
    query = (
        select(Account)
        .join(Account.subscription)
        .where(
            Subscription.deletion_scheduled_at.is_not(None),
            Subscription.deletion_scheduled_at >= start,
            Subscription.deletion_scheduled_at < end,
            ~already_reminded,
        )
        .options(selectinload(Account.subscription), selectinload(Account.organization))
        .order_by(Subscription.deletion_scheduled_at, Account.id)
    )
    accounts = (await db.execute(query)).scalars().all()

    return [
        ReminderCandidate(
            account_id=account.id,
            email=account.email,
            name=account.name,
            deletion_scheduled_at=as_utc(account.subscription.deletion_scheduled_at),
            organization_name=account.organization.name if account.organization else None,
            timezone=account.organization.timezone if account.organization else None,
        )
        for account in accounts
    ]


async def send_reminder(
    candidate: ReminderCandidate,
    window_days: int,
    *,
    session_maker: async_sessionmaker,
    transport: EmailTransport,
    settings: Settings,
) -> CandidateOutcome:
    """
    Email one candidate and record it in the ledger.

    The ledger row is written only after the provider confirmed the send,
    so a failed send is retried on the next run.
    """
    if not candidate.email or not candidate.deletion_scheduled_at:
        return CandidateOutcome.skip(candidate.account_id)

    countdown_label = get_countdown_label(window_days)
    try:
        content = dict(
            recipient_name=candidate.name or "there",
            organization_name=candidate.organization_name or "your organization",
            countdown_label=countdown_label,
            deletion_date=format_deletion_date(candidate.deletion_scheduled_at, candidate.timezone),
            app_url=settings.app_url,
            grace_period_days=settings.grace_period_days,
            product_name=settings.product_name,
        )
        await transport.send(
            to=candidate.email,
            subject=get_deletion_reminder_subject(settings.product_name, countdown_label),
            html=get_deletion_reminder_email_html(**content),
            text=get_deletion_reminder_email_text(**content),
        )

        async with session_maker() as db:
            db.add(ReminderLedgerEntry(
                account_id=candidate.account_id,
                days_before_deletion=window_days,
            ))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.warning(
                    "Reminder for user %s (%s days) was already recorded by another run",
                    candidate.account_id,
                    window_days,
                )
                return CandidateOutcome.skip(candidate.account_id)
    except Exception as e:
        message = f"Failed to send reminder to user {candidate.account_id}: {error_message(e)}"
        logger.error(message)
        return CandidateOutcome.failure(candidate.account_id, message)

    logger.info(
        "Reminder sent to user %s (%s) for %s before deletion scheduled at %s",
        candidate.account_id,
        candidate.email,
        countdown_label,
        candidate.deletion_scheduled_at.isoformat(),
    )
    return CandidateOutcome.success(candidate.account_id)


async def run_reminder_phase(
    report: RunReport,
    *,
    now: datetime,
    windows: Sequence[int],
    session_maker: async_sessionmaker,
    transport: EmailTransport,
    settings: Settings,
    concurrency: int = 1,
    heartbeat: Optional[Callable[[], Awaitable[None]]] = None,
) -> None:
    """
    Scan and dispatch every window in order, folding outcomes into ``report``.

    ``heartbeat`` runs before each window; whatever it raises ends the phase.
    """
    for window_days in windows:
        if heartbeat is not None:
            await heartbeat()

        try:
            async with session_maker() as db:
                candidates = await find_reminder_candidates(db, window_days, now)
        except Exception as e:
            message = (
                f"Failed to query reminder candidates for window {window_days} days: {error_message(e)}"
            )
            logger.error(message)
            report.add_error(message)
            continue

        if not candidates:
            continue

        logger.info("Window %s days: %d reminder candidate(s)", window_days, len(candidates))

        async def _send(candidate: ReminderCandidate) -> CandidateOutcome:
            return await send_reminder(
                candidate,
                window_days,
                session_maker=session_maker,
                transport=transport,
                settings=settings,
            )

        for outcome in await map_bounded(candidates, _send, concurrency):
            if outcome.ok:
                report.record_reminder(window_days)
            elif outcome.error:
                report.add_error(outcome.error)
