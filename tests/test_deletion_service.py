"""
Tests for the deletion phase: scanning, billing reconciliation and atomic delete
"""
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event

from account_cleanup.models.db_models import Account, ReminderLedgerEntry, Subscription
from account_cleanup.services.billing_service import BillingConfigurationError
from account_cleanup.services.cleanup_report import RunReport
from account_cleanup.services.deletion_service import (
    DeletionCandidate,
    delete_account,
    find_deletion_candidates,
    reconcile_billing,
    run_deletion_phase,
)
from tests.conftest import NOW, FakeBillingClient


@contextmanager
def failing_account_delete(engine, account_id):
    """Make the DELETE of one account row blow up inside its transaction"""

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith("DELETE FROM accounts") and account_id in (parameters or ()):
            raise RuntimeError("database is locked")

    event.listen(engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    try:
        yield
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", before_cursor_execute)


class TestFindDeletionCandidates:
    """Test the deletion scanner"""

    @pytest.mark.asyncio
    async def test_boundary_is_inclusive(self, session_maker, create_account):
        due_now = await create_account(email="now@example.com", deletion_scheduled_at=NOW)
        overdue = await create_account(
            email="old@example.com",
            deletion_scheduled_at=NOW - timedelta(days=2),
            stripe_subscription_id="sub_old",
        )
        await create_account(email="later@example.com", deletion_scheduled_at=NOW + timedelta(seconds=1))

        async with session_maker() as db:
            candidates = await find_deletion_candidates(db, NOW)

        assert [c.account_id for c in candidates] == [overdue, due_now]
        assert candidates[0].stripe_subscription_id == "sub_old"
        assert candidates[1].stripe_subscription_id is None

    @pytest.mark.asyncio
    async def test_no_deletion_date_is_never_a_candidate(self, session_maker, create_account):
        await create_account(deletion_scheduled_at=None)
        await create_account(with_subscription=False)

        async with session_maker() as db:
            assert await find_deletion_candidates(db, NOW) == []


class TestReconcileBilling:
    """Test idempotent Stripe cancellation"""

    @pytest.mark.asyncio
    async def test_active_subscription_is_cancelled(self):
        client = FakeBillingClient({"sub_1": "active"})

        outcome = await reconcile_billing(DeletionCandidate("acc", None, "sub_1"), client)

        assert outcome.cancelled
        assert outcome.error is None
        assert client.cancelled == ["sub_1"]

    @pytest.mark.asyncio
    async def test_already_cancelled_gets_no_cancel_call(self):
        client = FakeBillingClient({"sub_123": "canceled"})

        outcome = await reconcile_billing(DeletionCandidate("acc", None, "sub_123"), client)

        assert not outcome.cancelled
        assert client.retrieved == ["sub_123"]
        assert client.cancelled == []

    @pytest.mark.asyncio
    async def test_no_subscription_id_or_client_is_a_no_op(self):
        client = FakeBillingClient()

        assert not (await reconcile_billing(DeletionCandidate("acc", None, None), client)).cancelled
        assert not (await reconcile_billing(DeletionCandidate("acc", None, "sub_1"), None)).cancelled
        assert client.retrieved == []

    @pytest.mark.asyncio
    async def test_error_is_reported_not_raised(self):
        client = FakeBillingClient(fail_for={"sub_gone"})

        outcome = await reconcile_billing(DeletionCandidate("acc-9", None, "sub_gone"), client)

        assert not outcome.cancelled
        assert outcome.error == "Failed to cancel subscription sub_gone for user acc-9: No such subscription"


class TestDeleteAccount:
    """Test the atomic delete"""

    @pytest.mark.asyncio
    async def test_removes_account_and_dependents(self, session_maker, create_account, count_rows):
        account_id = await create_account(deletion_scheduled_at=NOW, reminded_windows=(7, 1))

        outcome = await delete_account(session_maker, DeletionCandidate(account_id, "user@example.com"))

        assert outcome.ok
        assert await count_rows(Account, account_id) == 0
        assert await count_rows(Subscription, account_id) == 0
        assert await count_rows(ReminderLedgerEntry, account_id) == 0

    @pytest.mark.asyncio
    async def test_failure_mid_transaction_leaves_everything(self, engine, session_maker, create_account, count_rows):
        account_id = await create_account(deletion_scheduled_at=NOW, reminded_windows=(7, 1))

        with failing_account_delete(engine, account_id):
            outcome = await delete_account(session_maker, DeletionCandidate(account_id, "user@example.com"))

        assert not outcome.ok
        assert outcome.error == f"Failed to delete user {account_id}: database is locked"
        assert await count_rows(Account, account_id) == 1
        assert await count_rows(Subscription, account_id) == 1
        assert await count_rows(ReminderLedgerEntry, account_id) == 2

    @pytest.mark.asyncio
    async def test_missing_account_is_a_failure(self, session_maker):
        outcome = await delete_account(session_maker, DeletionCandidate("ghost", None))

        assert not outcome.ok
        assert outcome.error == "Failed to delete user ghost: account no longer exists"


class TestRunDeletionPhase:
    """Test the deletion phase end to end"""

    @pytest.mark.asyncio
    async def test_already_cancelled_remote_subscription(self, session_maker, create_account, count_rows):
        y = await create_account(
            email="y@example.com",
            deletion_scheduled_at=NOW - timedelta(hours=2),
            stripe_subscription_id="sub_123",
        )
        client = FakeBillingClient({"sub_123": "canceled"})
        report = RunReport()

        await run_deletion_phase(
            report, now=NOW, session_maker=session_maker, billing_client_factory=lambda: client
        )

        assert client.cancelled == []
        assert report.stripe_subscriptions_cancelled == 0
        assert report.accounts_deleted == 1
        assert report.errors == []
        assert await count_rows(Account, y) == 0

    @pytest.mark.asyncio
    async def test_billing_failure_still_deletes(self, session_maker, create_account, count_rows):
        a = await create_account(
            email="a@example.com",
            deletion_scheduled_at=NOW - timedelta(hours=1),
            stripe_subscription_id="sub_err",
        )
        client = FakeBillingClient(fail_for={"sub_err"})
        report = RunReport()

        await run_deletion_phase(
            report, now=NOW, session_maker=session_maker, billing_client_factory=lambda: client
        )

        assert report.accounts_deleted == 1
        assert report.stripe_subscriptions_cancelled == 0
        assert report.errors == [
            f"Failed to cancel subscription sub_err for user {a}: No such subscription"
        ]
        assert await count_rows(Account, a) == 0

    @pytest.mark.asyncio
    async def test_failed_delete_is_isolated(self, engine, session_maker, create_account, count_rows):
        z = await create_account(
            email="z@example.com",
            deletion_scheduled_at=NOW - timedelta(hours=3),
            reminded_windows=(1, 0),
        )
        other = await create_account(
            email="ok@example.com",
            deletion_scheduled_at=NOW - timedelta(hours=1),
            stripe_subscription_id="sub_live",
        )
        client = FakeBillingClient({"sub_live": "past_due"})
        report = RunReport()

        with failing_account_delete(engine, z):
            await run_deletion_phase(
                report, now=NOW, session_maker=session_maker, billing_client_factory=lambda: client
            )

        assert report.accounts_deleted == 1
        assert report.stripe_subscriptions_cancelled == 1
        assert len(report.errors) == 1
        assert z in report.errors[0]
        assert await count_rows(Account, z) == 1
        assert await count_rows(ReminderLedgerEntry, z) == 2
        assert await count_rows(Account, other) == 0

    @pytest.mark.asyncio
    async def test_unavailable_billing_client_is_recorded(self, session_maker, create_account):
        await create_account(deletion_scheduled_at=NOW, stripe_subscription_id="sub_1")
        report = RunReport()

        def broken_factory():
            raise BillingConfigurationError("bad key")

        await run_deletion_phase(
            report, now=NOW, session_maker=session_maker, billing_client_factory=broken_factory
        )

        assert report.errors == ["Stripe client unavailable: bad key"]
        assert report.accounts_deleted == 1

    @pytest.mark.asyncio
    async def test_scan_failure_is_recorded(self, session_maker, monkeypatch):
        from account_cleanup.services import deletion_service

        async def broken(db, now):
            raise RuntimeError("relation does not exist")

        monkeypatch.setattr(deletion_service, "find_deletion_candidates", broken)
        report = RunReport()
        report.record_reminder(7)

        await run_deletion_phase(
            report, now=NOW, session_maker=session_maker, billing_client_factory=lambda: None
        )

        assert report.errors == ["Failed to query deletion candidates: relation does not exist"]
        assert report.reminders_sent == 1
        assert report.accounts_deleted == 0


class TestDeadlinesWithOffsets:
    """Test that deadlines stored with a UTC offset are compared as instants"""

    @pytest.mark.asyncio
    async def test_future_deadline_behind_utc_is_not_deleted_early(self, session_maker, create_account, count_rows):
        # 10:00 at UTC-5 is 15:00Z, three hours after NOW
        deadline = datetime(2026, 3, 2, 10, 0, tzinfo=timezone(timedelta(hours=-5)))
        account_id = await create_account(deletion_scheduled_at=deadline)

        report = RunReport()
        await run_deletion_phase(
            report, now=NOW, session_maker=session_maker, billing_client_factory=lambda: None
        )

        assert report.accounts_deleted == 0
        assert await count_rows(Account, account_id) == 1

        report = RunReport()
        await run_deletion_phase(
            report, now=NOW + timedelta(hours=3), session_maker=session_maker, billing_client_factory=lambda: None
        )

        assert report.accounts_deleted == 1
        assert await count_rows(Account, account_id) == 0

    @pytest.mark.asyncio
    async def test_candidate_deadline_is_the_same_instant(self, session_maker, create_account):
        deadline = datetime(2026, 3, 2, 14, 0, tzinfo=timezone(timedelta(hours=5)))
        await create_account(deletion_scheduled_at=deadline)

        async with session_maker() as db:
            [candidate] = await find_deletion_candidates(db, NOW)

        assert candidate.deletion_scheduled_at == deadline
        assert candidate.deletion_scheduled_at.tzinfo == timezone.utc


class TestConcurrentDeletionPhase:
    """Test the deletion phase with several workers in flight"""

    @pytest.fixture
    def engine(self, file_engine):
        return file_engine

    @pytest.mark.asyncio
    async def test_outcomes_are_attributed_per_account(self, engine, session_maker, create_account, count_rows):
        a = await create_account(
            email="a@example.com",
            deletion_scheduled_at=NOW - timedelta(hours=5),
            stripe_subscription_id="sub_err",
        )
        z = await create_account(
            email="z@example.com",
            deletion_scheduled_at=NOW - timedelta(hours=4),
            reminded_windows=(1, 0),
        )
        y = await create_account(
            email="y@example.com",
            deletion_scheduled_at=NOW - timedelta(hours=3),
            stripe_subscription_id="sub_done",
        )
        p = await create_account(
            email="p@example.com",
            deletion_scheduled_at=NOW - timedelta(hours=2),
            stripe_subscription_id="sub_live",
        )
        q = await create_account(email="q@example.com", deletion_scheduled_at=NOW - timedelta(hours=1))
        client = FakeBillingClient({"sub_done": "canceled", "sub_live": "active"}, fail_for={"sub_err"})
        report = RunReport()

        with failing_account_delete(engine, z):
            await run_deletion_phase(
                report,
                now=NOW,
                session_maker=session_maker,
                billing_client_factory=lambda: client,
                concurrency=3,
            )

        assert report.accounts_deleted == 4
        assert report.stripe_subscriptions_cancelled == 1
        assert client.cancelled == ["sub_live"]
        assert report.errors == [
            f"Failed to cancel subscription sub_err for user {a}: No such subscription",
            f"Failed to delete user {z}: database is locked",
        ]
        assert await count_rows(Account, z) == 1
        assert await count_rows(ReminderLedgerEntry, z) == 2
        for account_id in (a, y, p, q):
            assert await count_rows(Account, account_id) == 0
