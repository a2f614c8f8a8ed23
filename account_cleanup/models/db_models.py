"""
Account Cleanup - Database Models

Accounts, their billing subscription lifecycle, the reminder ledger
and the run lock.
"""

import enum
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Boolean,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base
from ..utils.timeutils import as_utc


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column that always holds UTC.

    SQLite stores only the wall-clock part of a datetime and drops the
    offset, so values are converted to UTC before they are written and come
    back tagged as UTC. Naive values are taken to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    UNPAID = "UNPAID"
    CANCELED = "CANCELED"
    GRACE_PERIOD = "GRACE_PERIOD"


class Organization(Base):
    """Tenant an account belongs to. Supplies the name and timezone used in reminders."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), default=utc_now)

    accounts: Mapped[List["Account"]] = relationship(back_populates="organization")


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    organization_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), default=utc_now)

    organization: Mapped[Optional[Organization]] = relationship(back_populates="accounts")
    subscription: Mapped[Optional["Subscription"]] = relationship(
        back_populates="account", uselist=False
    )
    deletion_reminders: Mapped[List["ReminderLedgerEntry"]] = relationship(
        back_populates="account"
    )


class Subscription(Base):
    """
    Billing lifecycle state attached to an account.

    ``deletion_scheduled_at`` is set only while the account is in a
    cancellation / grace flow. It is the timestamp the cleanup job acts on.
    """

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus, name="subscription_status"),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(timezone=True), nullable=True)
    grace_period_ends_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(timezone=True), nullable=True)
    deletion_scheduled_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(timezone=True), nullable=True, index=True
    )
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    account: Mapped[Account] = relationship(back_populates="subscription")


class ReminderLedgerEntry(Base):
    """One row per (account, reminder window) that has already been notified."""

    __tablename__ = "account_deletion_reminders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    days_before_deletion: Mapped[int] = mapped_column(Integer, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False, default=utc_now)

    account: Mapped[Account] = relationship(back_populates="deletion_reminders")

    __table_args__ = (
        UniqueConstraint(
            "account_id",
            "days_before_deletion",
            name="uq_account_deletion_reminders_account_window",
        ),
        Index("ix_account_deletion_reminders_account_id", "account_id"),
    )


class JobLock(Base):
    """Single-flight lock held by a running cleanup job."""

    __tablename__ = "job_locks"

    job_name: Mapped[str] = mapped_column(String(128), primary_key=True)
    locked_by: Mapped[str] = mapped_column(String(64), nullable=False)
    locked_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False, default=utc_now)
    ttl_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=900)
