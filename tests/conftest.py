"""
Pytest configuration and fixtures
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from account_cleanup.config import Settings
from account_cleanup.database import Base
from account_cleanup.models.db_models import (
    Account,
    Organization,
    ReminderLedgerEntry,
    Subscription,
    SubscriptionStatus,
)

# Use in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeEmailTransport:
    """Records sends instead of calling Resend"""

    def __init__(self, fail_for: Optional[set] = None, configured: bool = True, delay: float = 0):
        self.sent = []
        self.fail_for = fail_for or set()
        self.is_configured = configured
        self.delay = delay
        self.in_flight = 0
        self.peak_in_flight = 0

    async def send(self, *, to, subject, html, text, sender=None):
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if to in self.fail_for:
            raise RuntimeError("provider rejected the message")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"msg_{len(self.sent)}"


class FakeBillingClient:
    """Stripe stand-in keyed by subscription id"""

    def __init__(self, statuses: Optional[dict] = None, fail_for: Optional[set] = None):
        self.statuses = dict(statuses or {})
        self.fail_for = fail_for or set()
        self.retrieved = []
        self.cancelled = []

    async def retrieve_subscription_status(self, subscription_id):
        self.retrieved.append(subscription_id)
        if subscription_id in self.fail_for:
            raise RuntimeError("No such subscription")
        return self.statuses.get(subscription_id, "active")

    async def cancel_subscription(self, subscription_id):
        self.cancelled.append(subscription_id)
        self.statuses[subscription_id] = "canceled"


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database for each test"""
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """
    File-backed database with a real connection pool.

    The in-memory engine shares one connection between sessions, so tests that
    run workers concurrently use this one instead.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cleanup.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def settings():
    return Settings(
        cron_secret="test-cron-secret",
        resend_api_key="re_test_key",
        stripe_secret_key="",
        email_from="Athletics Dashboard <noreply@example.com>",
        app_url="https://app.example.com/",
        product_name="Athletics Dashboard",
        grace_period_days=14,
        reminder_windows=[0, 1, 7],
        cleanup_concurrency=1,
        cleanup_lock_ttl_seconds=900,
    )


@pytest.fixture
def email_transport():
    return FakeEmailTransport()


@pytest.fixture
def billing_client():
    return FakeBillingClient()


@pytest.fixture
def create_account(session_maker):
    """Factory inserting an account with an optional subscription"""

    async def _create(
        email: Optional[str] = "user@example.com",
        name: Optional[str] = "Test User",
        deletion_scheduled_at: Optional[datetime] = None,
        stripe_subscription_id: Optional[str] = None,
        with_subscription: bool = True,
        organization_name: Optional[str] = None,
        timezone_name: str = "UTC",
        reminded_windows=(),
    ) -> str:
        async with session_maker() as db:
            organization = None
            if organization_name:
                organization = Organization(name=organization_name, timezone=timezone_name)
                db.add(organization)

            account = Account(email=email, name=name, organization=organization)
            db.add(account)
            await db.flush()

            if with_subscription:
                db.add(Subscription(
                    account_id=account.id,
                    status=SubscriptionStatus.GRACE_PERIOD if deletion_scheduled_at else SubscriptionStatus.ACTIVE,
                    deletion_scheduled_at=deletion_scheduled_at,
                    canceled_at=deletion_scheduled_at - timedelta(days=14) if deletion_scheduled_at else None,
                    stripe_subscription_id=stripe_subscription_id,
                ))

            for window_days in reminded_windows:
                db.add(ReminderLedgerEntry(account_id=account.id, days_before_deletion=window_days))

            await db.commit()
            return account.id

    return _create


@pytest.fixture
def count_rows(session_maker):
    """Count rows of a model, optionally filtered by account id"""

    async def _count(model, account_id: Optional[str] = None) -> int:
        async with session_maker() as db:
            query = select(func.count()).select_from(model)
            if account_id is not None:
                column = model.id if model is Account else model.account_id
                query = query.where(column == account_id)
            return (await db.execute(query)).scalar_one()

    return _count
