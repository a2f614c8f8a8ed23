"""
Background Cron Loop

Optional in-process schedule for deployments without an external
scheduler hitting the cleanup endpoint.
"""

import asyncio
import logging

from ..database import async_session_maker
from ..config import get_settings
from .cleanup_service import AccountCleanupJob, CleanupPreconditionError
from .email_service import get_email_transport

logger = logging.getLogger(__name__)


async def run_cleanup_once() -> None:
    settings = get_settings()
    job = AccountCleanupJob(async_session_maker, get_email_transport(settings), settings=settings)
    report = await job.run()
    for message in report.errors:
        logger.warning("Cleanup error: %s", message)


async def cron_loop():
    """
    Background task that runs the account cleanup periodically.
    """
    settings = get_settings()
    interval = settings.cleanup_interval_seconds
    logger.info("Starting background cron loop (every %ss)", interval)

    try:
        while True:
            try:
                await run_cleanup_once()
            except CleanupPreconditionError as e:
                logger.warning("Account cleanup skipped: %s", e.message)
            except Exception as e:
                logger.error("Error in cron loop: %s", e)

            await asyncio.sleep(interval)

    except asyncio.CancelledError:
        logger.info("Cron loop cancelled")
        raise
