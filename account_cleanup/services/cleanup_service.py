"""
Account Cleanup - Run Orchestrator

One run = authorize the trigger, check the email transport, send the
deletion reminders for every window, delete the accounts whose grace period
is over, and hand back a report.

Preconditions fail before anything is sent or deleted. After that point
window, phase and candidate failures are collected in the report's
``errors`` list and the run carries on. The one exception is losing the run
lock to another invocation: the run stops at the next window or phase
boundary.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import Settings, get_settings
from ..utils.timeutils import utc_now
from ..utils.trigger_auth import secrets_match
from .billing_service import StripeBillingClient, get_billing_client
from .cleanup_report import RunReport
from .deletion_service import run_deletion_phase
from .email_service import EmailTransport
from .job_lock import CLEANUP_JOB_NAME, JobLockHeldError, JobLockLostError, job_lock
from .reminder_service import run_reminder_phase

logger = logging.getLogger(__name__)

LOCK_LOST_MESSAGE = "Account cleanup lock was lost to another run; stopping early"


class CleanupPreconditionError(Exception):
    """A run was refused before any side effect."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnauthorizedTriggerError(CleanupPreconditionError):
    status_code = 401


class CleanupNotConfiguredError(CleanupPreconditionError):
    status_code = 500


class CleanupAlreadyRunningError(CleanupPreconditionError):
    status_code = 409


def authorize_trigger(provided_secret: Optional[str], settings: Settings) -> None:
    """Fail closed: no configured secret means nobody may trigger a run."""
    if not settings.cron_secret:
        raise CleanupNotConfiguredError("CRON_SECRET is not configured")
    if not secrets_match(provided_secret, settings.cron_secret):
        raise UnauthorizedTriggerError("Unauthorized")


class AccountCleanupJob:
    """
    Runs the reminder and deletion phases against the database.

    Collaborators are injected so the scheduler endpoint, the CLI and tests
    all drive the same pipeline.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        email_transport: Optional[EmailTransport],
        *,
        settings: Optional[Settings] = None,
        billing_client_factory: Optional[Callable[[], Optional[StripeBillingClient]]] = None,
        concurrency: Optional[int] = None,
    ):
        self.session_maker = session_maker
        self.email_transport = email_transport
        self.settings = settings or get_settings()
        self.billing_client_factory = billing_client_factory or (
            lambda: get_billing_client(self.settings)
        )
        self.concurrency = concurrency or self.settings.cleanup_concurrency

    def validate_collaborators(self) -> None:
        if self.email_transport is None or not self.email_transport.is_configured:
            raise CleanupNotConfiguredError("Email service is not configured")

    async def run(self, now: Optional[datetime] = None) -> RunReport:
        """
        Execute one cleanup run.

        Raises CleanupPreconditionError subclasses when the run cannot start.
        """
        self.validate_collaborators()

        report = RunReport()
        now = now or utc_now()
        windows = self.settings.reminder_windows

        try:
            async with job_lock(
                self.session_maker,
                CLEANUP_JOB_NAME,
                self.settings.cleanup_lock_ttl_seconds,
            ) as lock:
                logger.info(
                    "Job started at %s with reminder windows %s",
                    report.run_at.isoformat(),
                    ",".join(str(w) for w in windows),
                )
                await self._run_phases(report, now, windows, lock.refresh)
        except JobLockHeldError as e:
            logger.warning("Skipping run: %s (holder %s)", e, e.locked_by)
            raise CleanupAlreadyRunningError("Account cleanup is already running") from e

        logger.info(
            "Job completed in %dms. Reminders: %d, Deletions: %d, Errors: %d",
            report.duration_ms,
            report.reminders_sent,
            report.accounts_deleted,
            len(report.errors),
        )
        return report

    async def _run_phases(self, report, now, windows, heartbeat) -> None:
        """Both phases, stopping early if another run took the lock over."""
        try:
            await run_reminder_phase(
                report,
                now=now,
                windows=windows,
                session_maker=self.session_maker,
                transport=self.email_transport,
                settings=self.settings,
                concurrency=self.concurrency,
                heartbeat=heartbeat,
            )
            await heartbeat()
            await run_deletion_phase(
                report,
                now=now,
                session_maker=self.session_maker,
                billing_client_factory=self.billing_client_factory,
                concurrency=self.concurrency,
            )
        except JobLockLostError as e:
            logger.error("Stopping run: %s", e)
            report.add_error(LOCK_LOST_MESSAGE)


async def run_account_cleanup(
    session_maker: async_sessionmaker,
    email_transport: Optional[EmailTransport],
    *,
    provided_secret: Optional[str],
    settings: Optional[Settings] = None,
    billing_client_factory: Optional[Callable[[], Optional[StripeBillingClient]]] = None,
    now: Optional[datetime] = None,
) -> RunReport:
    """Authorize a triggered run and execute it."""
    settings = settings or get_settings()
    authorize_trigger(provided_secret, settings)

    job = AccountCleanupJob(
        session_maker,
        email_transport,
        settings=settings,
        billing_client_factory=billing_client_factory,
    )
    return await job.run(now=now)
