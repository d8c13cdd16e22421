"""Remove the watch progress of one or more users.

Deletes every ``watch_progress`` row of each given user and recomputes the
user's counters, so ``user_profiles`` ends at zero.

Usage:
    python -m scripts.cleanup_progress USER_ID [USER_ID ...] [--dry-run]
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from src.catalog.service import CatalogService
from src.config.settings import get_settings
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.progress.service import ProgressService
from src.progress.stats import StatsService


logger = structlog.get_logger(__name__)


def build_services(session, keyspace: str) -> ProgressService:
    catalog = CatalogService(session=session, keyspace=keyspace)
    stats = StatsService(session=session, keyspace=keyspace, catalog=catalog)
    return ProgressService(
        session=session,
        keyspace=keyspace,
        catalog=catalog,
        stats=stats,
    )


async def cleanup_users(
    progress_service: ProgressService, user_ids: list[str], dry_run: bool = False
) -> dict[str, int]:
    """Delete progress for each user.

    Returns:
        Mapping of user id to the number of rows removed (or that would be
        removed in a dry run)
    """
    removed: dict[str, int] = {}
    for user_id in user_ids:
        if dry_run:
            rows = await progress_service.get_user_progress(user_id)
            removed[user_id] = len(rows)
            logger.info("cleanup_dry_run", user_id=user_id, rows=len(rows))
            continue

        removed[user_id] = await progress_service.delete_user_progress(user_id)

    return removed


async def run_cleanup(user_ids: list[str], dry_run: bool) -> None:
    """Connect, clean up and disconnect."""
    settings = get_settings()

    logger.info(
        "cleanup_starting",
        users=len(user_ids),
        dry_run=dry_run,
        keyspace=settings.cassandra_keyspace,
        hosts=settings.cassandra_hosts,
    )

    session = await init_async_cassandra()
    try:
        progress_service = build_services(session, settings.cassandra_keyspace)
        removed = await cleanup_users(progress_service, user_ids, dry_run=dry_run)
        logger.info(
            "cleanup_completed",
            users=len(removed),
            rows=sum(removed.values()),
            dry_run=dry_run,
        )
    finally:
        await shutdown_async_cassandra()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("user_ids", nargs="+", help="User ids to clean up")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count rows without deleting anything",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(run_cleanup(args.user_ids, args.dry_run))
