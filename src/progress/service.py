"""Video watch progress service layer.

Business logic for:
- Progress reports with automatic completion at the threshold
- Playlist completion toggles
- Progress queries and listings
- Triggering the per-user counter refresh

Writes are conditional (lightweight transactions): the first report for a
(user, video) pair inserts with ``IF NOT EXISTS`` and later reports update
with ``IF revision = ?``. A rejected write means another report landed in
between; the row is re-read and the report re-applied on top of it.
"""

import asyncio
import math
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from cassandra import ConsistencyLevel

from src.catalog.models import Video
from src.catalog.service import CatalogService, CatalogUnavailableError
from src.core.database.errors import STORAGE_ERRORS

from .exceptions import InvalidArgumentError, InvalidReferenceError, StorageFailureError
from .models import ProgressReport, WatchProgress, apply_report
from .schemas import (
    Pagination,
    PlaylistProgressResponse,
    PlaylistVideoProgress,
    ProgressListItem,
    ProgressListResponse,
)
from .stats import StatsService


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)


class ProgressService:
    """Service for video watch progress."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        catalog: CatalogService,
        stats: StatsService,
        max_write_attempts: int = 3,
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.catalog = catalog
        self.stats = stats
        self.max_write_attempts = max_write_attempts
        self._pending_refreshes: set[asyncio.Task] = set()
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.watch_progress
            WHERE user_id = ? AND video_id = ?
        """)
        # Serial read: must observe every committed conditional write.
        self._get_progress.consistency_level = ConsistencyLevel.LOCAL_SERIAL

        self._get_user_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.watch_progress
            WHERE user_id = ?
        """)
        self._get_user_progress.consistency_level = ConsistencyLevel.LOCAL_QUORUM

        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.watch_progress
            (user_id, video_id, watch_time_seconds, total_duration_seconds,
             progress_percentage, is_completed, last_position_seconds,
             bookmark_notes, first_watched_at, last_watched_at, completed_at,
             revision)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_progress.consistency_level = ConsistencyLevel.LOCAL_QUORUM
        self._insert_progress.serial_consistency_level = ConsistencyLevel.LOCAL_SERIAL

        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.watch_progress
            SET watch_time_seconds = ?, total_duration_seconds = ?,
                progress_percentage = ?, is_completed = ?,
                last_position_seconds = ?, bookmark_notes = ?,
                first_watched_at = ?, last_watched_at = ?, completed_at = ?,
                revision = ?
            WHERE user_id = ? AND video_id = ?
            IF revision = ?
        """)
        self._update_progress.consistency_level = ConsistencyLevel.LOCAL_QUORUM
        self._update_progress.serial_consistency_level = ConsistencyLevel.LOCAL_SERIAL

        self._delete_user_progress = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.watch_progress
            WHERE user_id = ?
        """)

    async def _execute(self, statement, params: list):
        try:
            return await self.session.aexecute(statement, params)
        except STORAGE_ERRORS as e:
            logger.error(
                "progress_query_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StorageFailureError from e

    @staticmethod
    def _validate_user_id(user_id: str) -> None:
        if not user_id:
            raise InvalidArgumentError("user_id is required")

    @classmethod
    def _validate_ids(cls, user_id: str, video_id: int) -> None:
        cls._validate_user_id(user_id)
        if video_id is None or video_id <= 0:
            raise InvalidArgumentError("video_id must be a positive integer")

    async def _require_video(self, video_id: int) -> Video:
        try:
            video = await self.catalog.get_video(video_id)
        except CatalogUnavailableError as e:
            raise StorageFailureError(e.message) from e
        if video is None:
            raise InvalidReferenceError("Video not found")
        return video

    # ==========================================================================
    # Progress Reports
    # ==========================================================================

    async def report_progress(
        self,
        user_id: str,
        video_id: int,
        watch_time_seconds: int,
        total_duration_seconds: int | None = None,
        last_position_seconds: int | None = None,
        bookmark_notes: str | None = None,
    ) -> WatchProgress:
        """Record a progress report for a video.

        Creates the row on the first report and updates it afterwards.
        Reaching 90% marks the video completed; once completed it stays
        completed.

        Args:
            user_id: User identifier
            video_id: Video id (must exist in the catalog)
            watch_time_seconds: Seconds watched (>= 0)
            total_duration_seconds: Video length; stored value used when None
            last_position_seconds: Resume position; stored value kept when None
            bookmark_notes: Notes; stored value kept when None

        Returns:
            The record as persisted

        Raises:
            InvalidArgumentError: Negative or missing numbers
            InvalidReferenceError: Unknown video
            StorageFailureError: Store unavailable or write kept conflicting
        """
        self._validate_ids(user_id, video_id)
        if watch_time_seconds is None or watch_time_seconds < 0:
            raise InvalidArgumentError("watch_time_seconds must be >= 0")
        if total_duration_seconds is not None and total_duration_seconds < 0:
            raise InvalidArgumentError("total_duration_seconds must be >= 0")
        if last_position_seconds is not None and last_position_seconds < 0:
            raise InvalidArgumentError("last_position_seconds must be >= 0")

        await self._require_video(video_id)

        report = ProgressReport(
            watch_time_seconds=watch_time_seconds,
            total_duration_seconds=total_duration_seconds,
            last_position_seconds=last_position_seconds,
            bookmark_notes=bookmark_notes,
        )
        return await self._upsert(user_id, video_id, report)

    async def mark_playlist_video_completion(
        self,
        user_id: str,
        video_id: int,
        playlist_id: int,
        completed: bool,
    ) -> WatchProgress:
        """Credit a playlist video as fully watched (or reset it to zero).

        Uses the catalog duration of the video. Marking ``completed=False``
        zeroes watch time and percentage but cannot clear an earlier
        completion.
        """
        self._validate_ids(user_id, video_id)

        try:
            entry = await self.catalog.get_playlist_video(playlist_id, video_id)
        except CatalogUnavailableError as e:
            raise StorageFailureError(e.message) from e
        if entry is None:
            raise InvalidReferenceError("Video not found in playlist")

        video = await self._require_video(video_id)
        watched = video.duration_seconds if completed else 0
        report = ProgressReport(
            watch_time_seconds=watched,
            total_duration_seconds=video.duration_seconds,
            last_position_seconds=watched,
            progress_percentage=100.0 if completed else 0.0,
        )

        progress = await self._upsert(user_id, video_id, report)
        logger.info(
            "playlist_video_marked",
            user_id=user_id,
            playlist_id=playlist_id,
            video_id=video_id,
            completed=completed,
        )
        return progress

    async def _upsert(
        self, user_id: str, video_id: int, report: ProgressReport
    ) -> WatchProgress:
        for attempt in range(1, self.max_write_attempts + 1):
            existing = await self._fetch_progress(user_id, video_id)
            progress = apply_report(
                existing, user_id, video_id, report, datetime.now(UTC)
            )
            if await self._write_progress(progress, existing):
                break
            logger.warning(
                "watch_progress_write_conflict",
                user_id=user_id,
                video_id=video_id,
                attempt=attempt,
            )
        else:
            logger.error(
                "watch_progress_write_exhausted",
                user_id=user_id,
                video_id=video_id,
                attempts=self.max_write_attempts,
            )
            raise StorageFailureError(
                f"Progress write did not apply after {self.max_write_attempts} attempts"
            )

        newly_completed = progress.is_completed and not (
            existing is not None and existing.is_completed
        )
        if newly_completed:
            logger.info(
                "video_completed",
                user_id=user_id,
                video_id=video_id,
                progress=round(progress.progress_percentage, 2),
            )
        else:
            logger.debug(
                "watch_progress_recorded",
                user_id=user_id,
                video_id=video_id,
                progress=round(progress.progress_percentage, 2),
                revision=progress.revision,
            )

        if progress.is_completed:
            self._schedule_counter_refresh(user_id)

        return progress

    async def _fetch_progress(self, user_id: str, video_id: int) -> WatchProgress | None:
        result = await self._execute(self._get_progress, [user_id, video_id])
        row = result.one()
        return WatchProgress.from_row(row) if row else None

    async def _write_progress(
        self, progress: WatchProgress, existing: WatchProgress | None
    ) -> bool:
        """Conditionally persist; False when another write got there first."""
        if existing is None:
            result = await self._execute(
                self._insert_progress,
                [
                    progress.user_id,
                    progress.video_id,
                    progress.watch_time_seconds,
                    progress.total_duration_seconds,
                    progress.progress_percentage,
                    progress.is_completed,
                    progress.last_position_seconds,
                    progress.bookmark_notes,
                    progress.first_watched_at,
                    progress.last_watched_at,
                    progress.completed_at,
                    progress.revision,
                ],
            )
        else:
            result = await self._execute(
                self._update_progress,
                [
                    progress.watch_time_seconds,
                    progress.total_duration_seconds,
                    progress.progress_percentage,
                    progress.is_completed,
                    progress.last_position_seconds,
                    progress.bookmark_notes,
                    progress.first_watched_at,
                    progress.last_watched_at,
                    progress.completed_at,
                    progress.revision,
                    progress.user_id,
                    progress.video_id,
                    existing.revision,
                ],
            )
        return bool(result.was_applied)

    # ==========================================================================
    # Counter Refresh
    # ==========================================================================

    def _schedule_counter_refresh(self, user_id: str) -> None:
        """Run the counter refresh detached from the caller.

        The report has already succeeded; refresh failures are only logged
        by the stats service.
        """
        task = asyncio.create_task(self.stats.refresh_user_counters(user_id))
        self._pending_refreshes.add(task)
        task.add_done_callback(self._pending_refreshes.discard)

    async def wait_for_pending_refreshes(self) -> None:
        """Await in-flight counter refreshes (used on shutdown and in tests)."""
        if self._pending_refreshes:
            await asyncio.gather(*self._pending_refreshes, return_exceptions=True)

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_progress(self, user_id: str, video_id: int) -> WatchProgress:
        """Get progress for a video; a zero record when never watched."""
        self._validate_ids(user_id, video_id)
        existing = await self._fetch_progress(user_id, video_id)
        return existing or WatchProgress.empty(user_id, video_id)

    async def get_user_progress(self, user_id: str) -> list[WatchProgress]:
        """Get every progress row of a user."""
        rows = await self._execute(self._get_user_progress, [user_id])
        return [WatchProgress.from_row(row) for row in rows]

    async def list_progress(
        self,
        user_id: str,
        completed: bool | None = None,
        subject_id: int | None = None,
        grade_level: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ProgressListResponse:
        """List a user's progress, most recently watched first.

        Filters on subject and grade level apply to the video metadata;
        rows whose video left the catalog only match when neither is set.
        """
        if page < 1 or limit < 1:
            raise InvalidArgumentError("page and limit must be >= 1")
        self._validate_user_id(user_id)

        rows = await self.get_user_progress(user_id)
        if completed is not None:
            rows = [r for r in rows if r.is_completed == completed]

        try:
            videos = await self.catalog.get_videos(r.video_id for r in rows)
        except CatalogUnavailableError as e:
            raise StorageFailureError(e.message) from e

        if subject_id is not None:
            rows = [
                r
                for r in rows
                if r.video_id in videos and videos[r.video_id].subject_id == subject_id
            ]
        if grade_level is not None:
            rows = [
                r
                for r in rows
                if r.video_id in videos
                and videos[r.video_id].grade_level == grade_level
            ]

        rows.sort(key=lambda r: r.last_watched_at or _EPOCH, reverse=True)
        total = len(rows)
        page_rows = rows[(page - 1) * limit : page * limit]

        try:
            subjects = await self.catalog.get_subjects(
                videos[r.video_id].subject_id for r in page_rows if r.video_id in videos
            )
        except CatalogUnavailableError as e:
            raise StorageFailureError(e.message) from e

        items = []
        for row in page_rows:
            video = videos.get(row.video_id)
            subject = subjects.get(video.subject_id) if video else None
            items.append(ProgressListItem.from_parts(row, video, subject))

        return ProgressListResponse(
            progress=items,
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit),
            ),
        )

    async def get_playlist_progress(
        self, user_id: str, playlist_id: int
    ) -> PlaylistProgressResponse:
        """Completion of each playlist video for a user, in playlist order."""
        self._validate_user_id(user_id)
        try:
            playlist = await self.catalog.get_playlist(playlist_id)
            if playlist is None:
                raise InvalidReferenceError("Playlist not found")
            entries = await self.catalog.get_playlist_videos(playlist_id)
        except CatalogUnavailableError as e:
            raise StorageFailureError(e.message) from e

        by_video = {p.video_id: p for p in await self.get_user_progress(user_id)}

        items = []
        for entry in entries:
            progress = by_video.get(entry.video_id)
            items.append(
                PlaylistVideoProgress(
                    playlist_id=playlist_id,
                    video_id=entry.video_id,
                    sort_order=entry.sort_order,
                    completed=progress.is_completed if progress else False,
                    progress_percentage=progress.progress_percentage if progress else 0.0,
                    last_watched=progress.last_watched_at if progress else None,
                )
            )

        return PlaylistProgressResponse(
            playlist_id=playlist_id,
            items=items,
            completed_count=sum(1 for i in items if i.completed),
            total=len(items),
        )

    # ==========================================================================
    # Administration
    # ==========================================================================

    async def delete_user_progress(self, user_id: str) -> int:
        """Delete every progress row of a user and reset their counters.

        Returns:
            Number of rows deleted
        """
        self._validate_user_id(user_id)
        rows = await self.get_user_progress(user_id)
        await self._execute(self._delete_user_progress, [user_id])
        await self.stats.refresh_user_counters(user_id)

        logger.info("user_progress_deleted", user_id=user_id, rows=len(rows))
        return len(rows)
