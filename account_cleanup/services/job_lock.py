"""
Single-flight lock for the cleanup job.

Overlapping triggers (a scheduler retry, two schedules firing together)
must not run the reminder phase twice at the same time. The lock is a row
keyed by job name; a holder that crashed without releasing is taken over
once its TTL has passed. A live holder keeps the row fresh with
``HeldJobLock.refresh`` and stops as soon as the row is no longer its own.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional
from uuid import uuid4

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models.db_models import JobLock
from ..utils.timeutils import as_utc, utc_now

logger = logging.getLogger(__name__)

CLEANUP_JOB_NAME = "account-cleanup"


class JobLockHeldError(Exception):
    def __init__(self, job_name: str, locked_by: Optional[str] = None):
        self.job_name = job_name
        self.locked_by = locked_by
        super().__init__(f"Job {job_name} is already running")


class JobLockLostError(Exception):
    """The lock row expired and was taken over by another holder."""

    def __init__(self, job_name: str, token: str):
        self.job_name = job_name
        self.token = token
        super().__init__(f"Lock for job {job_name} is no longer held by {token}")


async def acquire_job_lock(
    session_maker: async_sessionmaker,
    job_name: str,
    ttl_seconds: int,
    now: Optional[datetime] = None,
) -> str:
    """Take the lock and return the holder token. Raises JobLockHeldError if taken."""
    now = now or utc_now()
    token = uuid4().hex

    async with session_maker() as db:
        existing = await db.get(JobLock, job_name)
        if existing is not None:
            expires_at = as_utc(existing.locked_at) + timedelta(seconds=existing.ttl_seconds)
            if expires_at > now:
                raise JobLockHeldError(job_name, existing.locked_by)

            logger.warning(
                "Taking over stale lock for %s held by %s since %s",
                job_name,
                existing.locked_by,
                existing.locked_at,
            )
            await db.execute(
                delete(JobLock).where(
                    JobLock.job_name == job_name,
                    JobLock.locked_by == existing.locked_by,
                )
            )
            db.expunge(existing)

        db.add(JobLock(job_name=job_name, locked_by=token, locked_at=now, ttl_seconds=ttl_seconds))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise JobLockHeldError(job_name)

    return token


async def refresh_job_lock(
    session_maker: async_sessionmaker,
    job_name: str,
    token: str,
    now: Optional[datetime] = None,
) -> None:
    """Push the holder's ``locked_at`` forward. Raises JobLockLostError if the row is gone."""
    async with session_maker() as db:
        result = await db.execute(
            update(JobLock)
            .where(JobLock.job_name == job_name, JobLock.locked_by == token)
            .values(locked_at=now or utc_now())
        )
        await db.commit()

    if result.rowcount == 0:
        raise JobLockLostError(job_name, token)


async def release_job_lock(session_maker: async_sessionmaker, job_name: str, token: str) -> None:
    async with session_maker() as db:
        await db.execute(
            delete(JobLock).where(JobLock.job_name == job_name, JobLock.locked_by == token)
        )
        await db.commit()


@dataclass
class HeldJobLock:
    session_maker: async_sessionmaker
    job_name: str
    token: str

    async def refresh(self) -> None:
        await refresh_job_lock(self.session_maker, self.job_name, self.token)


@asynccontextmanager
async def job_lock(
    session_maker: async_sessionmaker,
    job_name: str,
    ttl_seconds: int,
    now: Optional[datetime] = None,
) -> AsyncIterator[HeldJobLock]:
    token = await acquire_job_lock(session_maker, job_name, ttl_seconds, now=now)
    try:
        yield HeldJobLock(session_maker, job_name, token)
    finally:
        try:
            await release_job_lock(session_maker, job_name, token)
        except Exception as e:
            # The TTL lets the next run take over
            logger.error("Failed to release lock %s: %s", job_name, e)
