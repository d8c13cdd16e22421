"""Learning statistics and per-user counters.

Counters on ``user_profiles`` are always recomputed from the full set of
the user's ``watch_progress`` rows, so a lost or duplicated refresh never
leaves them drifting. Statistics are computed on demand from the same
single-partition read and enriched with catalog metadata.
"""

import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from cassandra import ConsistencyLevel

from src.catalog.models import Subject, Video
from src.catalog.service import CatalogService, CatalogUnavailableError
from src.core.database.errors import STORAGE_ERRORS

from .exceptions import StorageFailureError
from .models import UserLearningStats, WatchProgress
from .schemas import (
    LearningStatsResponse,
    OverallStats,
    RecentActivityItem,
    SubjectStats,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

RECENT_ACTIVITY_LIMIT = 10

_EPOCH = datetime.min.replace(tzinfo=UTC)


# ==============================================================================
# Aggregation helpers (pure)
# ==============================================================================


def summarize_overall(rows: list[WatchProgress]) -> OverallStats:
    """Totals across all of a user's rows; zeros for an empty list."""
    if not rows:
        return OverallStats()
    return OverallStats(
        total_videos_watched=len(rows),
        total_completed=sum(1 for r in rows if r.is_completed),
        total_watch_time=sum(r.watch_time_seconds for r in rows),
        average_progress=math.fsum(r.progress_percentage for r in rows) / len(rows),
    )


def group_by_subject(
    rows: list[WatchProgress],
    videos: dict[int, Video],
    subjects: dict[int, Subject],
) -> list[SubjectStats]:
    """Per-subject aggregates, ordered like the subject listing.

    Rows whose video or subject is no longer in the catalog are left out.
    """
    groups: dict[int, list[WatchProgress]] = {}
    for row in rows:
        video = videos.get(row.video_id)
        if video is None or video.subject_id not in subjects:
            continue
        groups.setdefault(video.subject_id, []).append(row)

    result = []
    for subject_id, members in groups.items():
        subject = subjects[subject_id]
        result.append(
            SubjectStats(
                subject_id=subject_id,
                subject_name=subject.name,
                subject_name_chinese=subject.name_chinese,
                color_code=subject.color_code,
                videos_watched=len(members),
                completed_count=sum(1 for m in members if m.is_completed),
                avg_progress=math.fsum(m.progress_percentage for m in members)
                / len(members),
            )
        )

    return sorted(
        result,
        key=lambda s: (subjects[s.subject_id].sort_order, s.subject_name),
    )


def recent_activity(
    rows: list[WatchProgress],
    videos: dict[int, Video],
    subjects: dict[int, Subject],
    limit: int = RECENT_ACTIVITY_LIMIT,
) -> list[RecentActivityItem]:
    """The ``limit`` most recently watched rows, newest first."""
    ordered = sorted(rows, key=lambda r: r.last_watched_at or _EPOCH, reverse=True)

    items = []
    for row in ordered[:limit]:
        video = videos.get(row.video_id)
        subject = subjects.get(video.subject_id) if video else None
        items.append(
            RecentActivityItem(
                video_id=row.video_id,
                title=video.title if video else None,
                title_chinese=video.title_chinese if video else None,
                thumbnail_url=video.thumbnail_url if video else None,
                subject_name=subject.name if subject else None,
                progress_percentage=row.progress_percentage,
                is_completed=row.is_completed,
                last_watched_at=row.last_watched_at,
            )
        )
    return items


# ==============================================================================
# Stats Service
# ==============================================================================


class StatsService:
    """Service for per-user counters and learning statistics."""

    def __init__(self, session: "Session", keyspace: str, catalog: CatalogService):
        """Initialize with Cassandra session and the catalog lookups."""
        self.session = session
        self.keyspace = keyspace
        self.catalog = catalog
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_user_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.watch_progress
            WHERE user_id = ?
        """)
        # Refresh follows a completed write; it must count that row.
        self._get_user_progress.consistency_level = ConsistencyLevel.LOCAL_SERIAL

        self._get_user_profile = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.user_profiles
            WHERE user_id = ?
        """)

        self._update_user_counters = self.session.prepare(f"""
            UPDATE {self.keyspace}.user_profiles
            SET total_watch_time = ?, videos_completed = ?, updated_at = ?
            WHERE user_id = ?
        """)

    async def _fetch_user_progress(self, user_id: str) -> list[WatchProgress]:
        rows = await self.session.aexecute(self._get_user_progress, [user_id])
        return [WatchProgress.from_row(row) for row in rows]

    # ==========================================================================
    # Counters
    # ==========================================================================

    async def refresh_user_counters(self, user_id: str) -> UserLearningStats | None:
        """Recompute and store the user's counters.

        Best-effort: failures are logged and never raised, so this is safe
        to run as a detached task after a progress write. Returns None when
        the refresh failed.
        """
        try:
            rows = await self._fetch_user_progress(user_id)
            counters = UserLearningStats.from_rows(user_id, rows)
            await self.session.aexecute(
                self._update_user_counters,
                [
                    counters.total_watch_time,
                    counters.videos_completed,
                    counters.updated_at,
                    user_id,
                ],
            )
        except Exception as e:
            logger.warning(
                "user_counters_refresh_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        logger.info(
            "user_counters_refreshed",
            user_id=user_id,
            total_watch_time=counters.total_watch_time,
            videos_completed=counters.videos_completed,
        )
        return counters

    async def get_user_counters(self, user_id: str) -> UserLearningStats:
        """Read the stored counters; zeros when never refreshed."""
        try:
            result = await self.session.aexecute(self._get_user_profile, [user_id])
        except STORAGE_ERRORS as e:
            logger.error("user_counters_read_failed", user_id=user_id, error=str(e))
            raise StorageFailureError from e
        row = result.one()
        return UserLearningStats.from_row(row) if row else UserLearningStats(user_id)

    # ==========================================================================
    # Statistics
    # ==========================================================================

    async def get_learning_stats(self, user_id: str) -> LearningStatsResponse:
        """Overall totals, per-subject breakdown and recent activity."""
        try:
            rows = await self._fetch_user_progress(user_id)
        except STORAGE_ERRORS as e:
            logger.error("learning_stats_read_failed", user_id=user_id, error=str(e))
            raise StorageFailureError from e

        if not rows:
            return LearningStatsResponse(overall=OverallStats())

        try:
            videos = await self.catalog.get_videos(r.video_id for r in rows)
            subjects = await self.catalog.get_subjects(
                v.subject_id for v in videos.values()
            )
        except CatalogUnavailableError as e:
            raise StorageFailureError(e.message) from e

        stats = LearningStatsResponse(
            overall=summarize_overall(rows),
            by_subject=group_by_subject(rows, videos, subjects),
            recent_activity=recent_activity(rows, videos, subjects),
        )

        logger.debug(
            "learning_stats_computed",
            user_id=user_id,
            videos_watched=stats.overall.total_videos_watched,
            subjects=len(stats.by_subject),
        )
        return stats
