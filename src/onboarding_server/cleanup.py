"""Orphan-session cleanup CLI — ``onboarding-cleanup``.

Deletes anonymous (never attached) questionnaire sessions that have not
been updated for a number of days.  Intended for cron jobs.

Examples::

    # Delete anonymous sessions idle for more than 30 days (default)
    onboarding-cleanup

    # Delete every anonymous session
    onboarding-cleanup --days 0
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from onboarding_server.config import DEFAULT_CLEANUP_DAYS

logger = logging.getLogger(__name__)


async def run_cleanup(*, days: int = DEFAULT_CLEANUP_DAYS) -> int:
    """Delete orphaned sessions and return the number of removed rows."""
    # Lazy imports to avoid loading DB machinery at module import time
    from onboarding_db.engine import dispose_engine, session_scope
    from onboarding_db.repository import SessionRepository

    repo = SessionRepository()

    try:
        async with session_scope() as db:
            affected = await repo.purge_orphans(db, older_than_days=days)

        logger.info("Cleanup complete: affected_rows=%d, days=%d", affected, days)
        return affected
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``onboarding-cleanup``."""
    parser = argparse.ArgumentParser(
        prog="onboarding-cleanup",
        description="Delete anonymous questionnaire sessions that were never attached.",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=DEFAULT_CLEANUP_DAYS,
        help=(
            "Age threshold in days (default: $DEFAULT_CLEANUP_DAYS or 30). "
            "0 deletes every anonymous session."
        ),
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()
    if args.days < 0:
        parser.error("--days must be >= 0")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    affected = asyncio.run(run_cleanup(days=args.days))

    print(f"Deleted sessions: {affected}")
    sys.exit(0)
