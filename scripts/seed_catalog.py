"""Load a small demo catalog (subjects, videos, one playlist).

Rows are upserts keyed by id, so running the script twice is harmless.

Usage:
    python -m scripts.seed_catalog
"""

import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from src.catalog.models import Playlist, Subject, Video
from src.catalog.service import CatalogService
from src.config.settings import get_settings
from src.core.database import init_async_cassandra, shutdown_async_cassandra


logger = structlog.get_logger(__name__)


SUBJECTS = [
    Subject(1, "Mathematics", "数学", "#3B82F6", "G4", sort_order=1),
    Subject(2, "Chinese", "语文", "#EF4444", "G4", sort_order=2),
    Subject(3, "English", "英语", "#10B981", "G4", sort_order=3),
]

VIDEOS = [
    Video(101, 1, "Fractions", "分数", duration_seconds=600, grade_level="G4"),
    Video(102, 1, "Decimals", "小数", duration_seconds=720, grade_level="G4"),
    Video(201, 2, "Classical Poems", "古诗", duration_seconds=900, grade_level="G4"),
    Video(301, 3, "Phonics", "自然拼读", duration_seconds=480, grade_level="G4"),
]

PLAYLISTS = [
    (Playlist(1, "Math Basics", "Fractions then decimals"), [101, 102]),
]


async def seed(catalog: CatalogService) -> dict[str, int]:
    """Write the demo rows; returns counts per entity."""
    for subject in SUBJECTS:
        await catalog.save_subject(subject)
    for video in VIDEOS:
        await catalog.save_video(video)
    for playlist, video_ids in PLAYLISTS:
        await catalog.save_playlist(playlist)
        for position, video_id in enumerate(video_ids):
            await catalog.add_video_to_playlist(
                playlist.playlist_id, video_id, sort_order=position
            )

    return {
        "subjects": len(SUBJECTS),
        "videos": len(VIDEOS),
        "playlists": len(PLAYLISTS),
    }


async def run_seed() -> None:
    settings = get_settings()
    logger.info("seed_starting", keyspace=settings.cassandra_keyspace)

    session = await init_async_cassandra()
    try:
        counts = await seed(
            CatalogService(session=session, keyspace=settings.cassandra_keyspace)
        )
        logger.info("seed_completed", **counts)
    finally:
        await shutdown_async_cassandra()


if __name__ == "__main__":
    asyncio.run(run_seed())
