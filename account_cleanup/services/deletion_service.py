"""
Account deletion phase.

Accounts whose scheduled deletion time has passed are removed for good.
Any linked Stripe subscription is cancelled first, but a billing failure
never keeps an account alive past its deadline.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.db_models import Account, ReminderLedgerEntry, Subscription
from ..utils.concurrency import map_bounded
from ..utils.timeutils import as_utc
from .billing_service import StripeBillingClient, is_canceled_status
from .cleanup_report import CandidateOutcome, RunReport, error_message

logger = logging.getLogger(__name__)


@dataclass
class DeletionCandidate:
    account_id: str
    email: Optional[str]
    stripe_subscription_id: Optional[str] = None
    deletion_scheduled_at: Optional[datetime] = None


@dataclass
class BillingOutcome:
    cancelled: bool = False
    error: Optional[str] = None


@dataclass
class DeletionOutcome:
    account_id: str
    deleted: bool = False
    subscription_cancelled: bool = False
    errors: List[str] = field(default_factory=list)


async def find_deletion_candidates(db: AsyncSession, now: datetime) -> List[DeletionCandidate]:
    """Accounts whose ``deletion_scheduled_at`` is at or before ``now``."""
    query = (
        select(Account.id, Account.email, Subscription.stripe_subscription_id, Subscription.deletion_scheduled_at)
        .join(Subscription, Subscription.account_id == Account.id)
        .where(
            Subscription.deletion_scheduled_at.is_not(None),
            Subscription.deletion_scheduled_at <= now,
        )
        .order_by(Subscription.deletion_scheduled_at, Account.id)
    )
    rows = (await db.execute(query)).all()

    return [
        DeletionCandidate(
            account_id=row.id,
            email=row.email,
            stripe_subscription_id=row.stripe_subscription_id,
            deletion_scheduled_at=as_utc(row.deletion_scheduled_at),
        )
        for row in rows
    ]


async def reconcile_billing(
    candidate: DeletionCandidate,
    billing_client: Optional[StripeBillingClient],
) -> BillingOutcome:
    """
    Make sure the candidate's Stripe subscription ends up cancelled.

    The remote status is checked first so an already-cancelled subscription
    never gets a second cancel request.
    """
    subscription_id = candidate.stripe_subscription_id
    if billing_client is None or not subscription_id:
        return BillingOutcome()

    try:
        status = await billing_client.retrieve_subscription_status(subscription_id)
        if is_canceled_status(status):
            logger.info(
                "Stripe subscription %s for user %s already %s",
                subscription_id,
                candidate.account_id,
                status,
            )
            return BillingOutcome()

        await billing_client.cancel_subscription(subscription_id)
    except Exception as e:
        message = (
            f"Failed to cancel subscription {subscription_id} for user {candidate.account_id}: "
            f"{error_message(e)}"
        )
        logger.error(message)
        return BillingOutcome(error=message)

    logger.info("Cancelled Stripe subscription %s for user %s", subscription_id, candidate.account_id)
    return BillingOutcome(cancelled=True)


async def delete_account(
    session_maker: async_sessionmaker,
    candidate: DeletionCandidate,
) -> CandidateOutcome:
    """
    Remove the account with its reminder ledger and subscription in one
    transaction. Either every row goes or none does.
    """
    account_id = candidate.account_id
    try:
        async with session_maker() as db:
            async with db.begin():
                await db.execute(
                    delete(ReminderLedgerEntry).where(ReminderLedgerEntry.account_id == account_id)
                )
                await db.execute(delete(Subscription).where(Subscription.account_id == account_id))
                result = await db.execute(delete(Account).where(Account.id == account_id))
                if result.rowcount == 0:
                    raise LookupError("account no longer exists")
    except Exception as e:
        message = f"Failed to delete user {account_id}: {error_message(e)}"
        logger.error(message)
        return CandidateOutcome.failure(account_id, message)

    logger.info("Deleted user %s (%s) from system", account_id, candidate.email or "no-email")
    return CandidateOutcome.success(account_id)


async def process_deletion_candidate(
    candidate: DeletionCandidate,
    *,
    session_maker: async_sessionmaker,
    billing_client: Optional[StripeBillingClient],
) -> DeletionOutcome:
    outcome = DeletionOutcome(account_id=candidate.account_id)

    billing = await reconcile_billing(candidate, billing_client)
    outcome.subscription_cancelled = billing.cancelled
    if billing.error:
        outcome.errors.append(billing.error)

    deletion = await delete_account(session_maker, candidate)
    outcome.deleted = deletion.ok
    if deletion.error:
        outcome.errors.append(deletion.error)

    return outcome


async def run_deletion_phase(
    report: RunReport,
    *,
    now: datetime,
    session_maker: async_sessionmaker,
    billing_client_factory: Callable[[], Optional[StripeBillingClient]],
    concurrency: int = 1,
) -> None:
    billing_client: Optional[StripeBillingClient] = None
    try:
        billing_client = billing_client_factory()
    except Exception as e:
        message = f"Stripe client unavailable: {error_message(e)}"
        logger.error(message)
        report.add_error(message)

    try:
        async with session_maker() as db:
            candidates = await find_deletion_candidates(db, now)
    except Exception as e:
        message = f"Failed to query deletion candidates: {error_message(e)}"
        logger.error(message)
        report.add_error(message)
        return

    if not candidates:
        return

    logger.info("%d account(s) past their deletion date", len(candidates))

    async def _process(candidate: DeletionCandidate) -> DeletionOutcome:
        return await process_deletion_candidate(
            candidate,
            session_maker=session_maker,
            billing_client=billing_client,
        )

    for outcome in await map_bounded(candidates, _process, concurrency):
        if outcome.subscription_cancelled:
            report.record_cancellation()
        if outcome.deleted:
            report.record_deletion()
        for message in outcome.errors:
            report.add_error(message)
