"""
Account Cleanup - Command line runner

Usage:
    # Run one cleanup pass against the configured database
    python -m scripts.run_account_cleanup run

    # Show who would be reminded / deleted right now, without side effects
    python -m scripts.run_account_cleanup preview

    # Override the reminder windows for a preview
    python -m scripts.run_account_cleanup preview --windows 7,3,1,0
"""

import argparse
import asyncio
import json
import sys
from dataclasses import replace

from account_cleanup.config import get_settings, parse_reminder_windows
from account_cleanup.database import async_session_maker, create_tables
from account_cleanup.models.schemas import CandidatePreview
from account_cleanup.services.cleanup_service import AccountCleanupJob, CleanupPreconditionError
from account_cleanup.services.deletion_service import find_deletion_candidates
from account_cleanup.services.email_service import get_email_transport
from account_cleanup.services.reminder_service import find_reminder_candidates
from account_cleanup.utils.timeutils import utc_now


async def run_cleanup(windows: str | None):
    """Run the full pipeline once and print the report as JSON."""
    await create_tables()

    settings = get_settings()
    if windows:
        settings = replace(settings, reminder_windows=parse_reminder_windows(windows))

    job = AccountCleanupJob(async_session_maker, get_email_transport(settings), settings=settings)
    try:
        report = await job.run()
    except CleanupPreconditionError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)

    print(report.to_response().model_dump_json(by_alias=True, indent=2))
    if report.errors:
        sys.exit(2)


async def preview_cleanup(windows: str | None):
    """List reminder and deletion candidates without sending or deleting anything."""
    await create_tables()

    settings = get_settings()
    reminder_windows = parse_reminder_windows(windows) if windows else settings.reminder_windows
    now = utc_now()

    previews = {"reminders": [], "deletions": []}
    async with async_session_maker() as db:
        for window_days in reminder_windows:
            for c in await find_reminder_candidates(db, window_days, now):
                previews["reminders"].append(CandidatePreview(
                    account_id=c.account_id,
                    email=c.email,
                    deletion_scheduled_at=c.deletion_scheduled_at.isoformat() if c.deletion_scheduled_at else None,
                    window_days=window_days,
                ).model_dump())

        for c in await find_deletion_candidates(db, now):
            previews["deletions"].append(CandidatePreview(
                account_id=c.account_id,
                email=c.email,
                deletion_scheduled_at=c.deletion_scheduled_at.isoformat() if c.deletion_scheduled_at else None,
                stripe_subscription_id=c.stripe_subscription_id,
            ).model_dump())

    print(json.dumps(previews, indent=2))
    print(
        f"\nTotal: {len(previews['reminders'])} reminder(s), "
        f"{len(previews['deletions'])} deletion(s) pending",
        file=sys.stderr,
    )


def main():
    parser = argparse.ArgumentParser(
        description="Account deletion reminders and grace-period cleanup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m scripts.run_account_cleanup run
  python -m scripts.run_account_cleanup preview
  python -m scripts.run_account_cleanup preview --windows 7,3,1,0
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Send reminders and delete expired accounts")
    run_parser.add_argument("--windows", type=str, help="Comma-separated reminder windows in days")

    preview_parser = subparsers.add_parser("preview", help="List candidates without side effects")
    preview_parser.add_argument("--windows", type=str, help="Comma-separated reminder windows in days")

    args = parser.parse_args()

    if args.command == "run":
        asyncio.run(run_cleanup(args.windows))
    elif args.command == "preview":
        asyncio.run(preview_cleanup(args.windows))


if __name__ == "__main__":
    main()
