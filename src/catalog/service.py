"""Catalog service layer.

Read lookups for subjects, videos and playlists, plus the upserts used by
the seed script. Batch lookups use `IN` queries on the partition key so
enrichment of a whole progress listing costs one round-trip per table.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from src.core.database.errors import STORAGE_ERRORS

from .models import Playlist, PlaylistVideo, Subject, Video


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class CatalogError(Exception):
    """Base catalog error."""

    def __init__(self, message: str, code: str = "catalog_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CatalogUnavailableError(CatalogError):
    """The catalog store could not be reached."""

    def __init__(self, message: str = "Catalog storage unavailable"):
        super().__init__(message, "catalog_unavailable")


class CatalogService:
    """Service for catalog metadata lookups."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        ks = self.keyspace

        self._get_subject = self.session.prepare(
            f"SELECT * FROM {ks}.subjects WHERE subject_id = ?"
        )
        self._get_subjects = self.session.prepare(
            f"SELECT * FROM {ks}.subjects WHERE subject_id IN ?"
        )
        self._list_subjects = self.session.prepare(f"SELECT * FROM {ks}.subjects")
        self._get_video = self.session.prepare(
            f"SELECT * FROM {ks}.videos WHERE video_id = ?"
        )
        self._get_videos = self.session.prepare(
            f"SELECT * FROM {ks}.videos WHERE video_id IN ?"
        )
        self._get_playlist = self.session.prepare(
            f"SELECT * FROM {ks}.playlists WHERE playlist_id = ?"
        )
        self._get_playlist_video = self.session.prepare(
            f"SELECT * FROM {ks}.playlist_videos WHERE playlist_id = ? AND video_id = ?"
        )
        self._get_playlist_videos = self.session.prepare(
            f"SELECT * FROM {ks}.playlist_videos WHERE playlist_id = ?"
        )

        self._upsert_subject = self.session.prepare(f"""
            INSERT INTO {ks}.subjects
            (subject_id, name, name_chinese, color_code, grade_level, sort_order, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._upsert_video = self.session.prepare(f"""
            INSERT INTO {ks}.videos
            (video_id, subject_id, title, title_chinese, description, video_url,
             thumbnail_url, duration_seconds, grade_level, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._upsert_playlist = self.session.prepare(f"""
            INSERT INTO {ks}.playlists
            (playlist_id, title, description, is_public, created_at)
            VALUES (?, ?, ?, ?, ?)
        """)
        self._upsert_playlist_video = self.session.prepare(f"""
            INSERT INTO {ks}.playlist_videos
            (playlist_id, video_id, sort_order, added_at)
            VALUES (?, ?, ?, ?)
        """)

    async def _execute(self, statement, params: list):
        try:
            return await self.session.aexecute(statement, params)
        except STORAGE_ERRORS as e:
            logger.error("catalog_query_failed", error=str(e))
            raise CatalogUnavailableError from e

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_subject(self, subject_id: int) -> Subject | None:
        """Get subject by id."""
        result = await self._execute(self._get_subject, [subject_id])
        row = result.one()
        return Subject.from_row(row) if row else None

    async def get_subjects(self, subject_ids: Iterable[int]) -> dict[int, Subject]:
        """Get several subjects keyed by id; unknown ids are absent."""
        ids = sorted({sid for sid in subject_ids if sid is not None})
        if not ids:
            return {}
        rows = await self._execute(self._get_subjects, [ids])
        return {row.subject_id: Subject.from_row(row) for row in rows}

    async def list_subjects(self) -> list[Subject]:
        """List all subjects ordered by sort_order then name."""
        rows = await self._execute(self._list_subjects, [])
        subjects = [Subject.from_row(row) for row in rows]
        return sorted(subjects, key=lambda s: (s.sort_order, s.name))

    async def get_video(self, video_id: int) -> Video | None:
        """Get video by id."""
        result = await self._execute(self._get_video, [video_id])
        row = result.one()
        return Video.from_row(row) if row else None

    async def get_videos(self, video_ids: Iterable[int]) -> dict[int, Video]:
        """Get several videos keyed by id; unknown ids are absent."""
        ids = sorted(set(video_ids))
        if not ids:
            return {}
        rows = await self._execute(self._get_videos, [ids])
        return {row.video_id: Video.from_row(row) for row in rows}

    async def get_playlist(self, playlist_id: int) -> Playlist | None:
        """Get playlist by id."""
        result = await self._execute(self._get_playlist, [playlist_id])
        row = result.one()
        return Playlist.from_row(row) if row else None

    async def get_playlist_video(
        self, playlist_id: int, video_id: int
    ) -> PlaylistVideo | None:
        """Get the membership row, or None when the video is not in the playlist."""
        result = await self._execute(self._get_playlist_video, [playlist_id, video_id])
        row = result.one()
        return PlaylistVideo.from_row(row) if row else None

    async def get_playlist_videos(self, playlist_id: int) -> list[PlaylistVideo]:
        """Get playlist members in playlist order."""
        rows = await self._execute(self._get_playlist_videos, [playlist_id])
        entries = [PlaylistVideo.from_row(row) for row in rows]
        return sorted(entries, key=lambda e: (e.sort_order, e.video_id))

    # ==========================================================================
    # Writes (seeding)
    # ==========================================================================

    async def save_subject(self, subject: Subject) -> Subject:
        """Insert or replace a subject."""
        subject.created_at = subject.created_at or datetime.now(UTC)
        await self._execute(
            self._upsert_subject,
            [
                subject.subject_id,
                subject.name,
                subject.name_chinese,
                subject.color_code,
                subject.grade_level,
                subject.sort_order,
                subject.created_at,
            ],
        )
        logger.info("subject_saved", subject_id=subject.subject_id)
        return subject

    async def save_video(self, video: Video) -> Video:
        """Insert or replace a video."""
        video.created_at = video.created_at or datetime.now(UTC)
        await self._execute(
            self._upsert_video,
            [
                video.video_id,
                video.subject_id,
                video.title,
                video.title_chinese,
                video.description,
                video.video_url,
                video.thumbnail_url,
                video.duration_seconds,
                video.grade_level,
                video.is_active,
                video.created_at,
            ],
        )
        logger.info("video_saved", video_id=video.video_id, subject_id=video.subject_id)
        return video

    async def save_playlist(self, playlist: Playlist) -> Playlist:
        """Insert or replace a playlist."""
        playlist.created_at = playlist.created_at or datetime.now(UTC)
        await self._execute(
            self._upsert_playlist,
            [
                playlist.playlist_id,
                playlist.title,
                playlist.description,
                playlist.is_public,
                playlist.created_at,
            ],
        )
        logger.info("playlist_saved", playlist_id=playlist.playlist_id)
        return playlist

    async def add_video_to_playlist(
        self, playlist_id: int, video_id: int, sort_order: int = 0
    ) -> PlaylistVideo:
        """Add (or re-order) a video in a playlist."""
        entry = PlaylistVideo(
            playlist_id=playlist_id,
            video_id=video_id,
            sort_order=sort_order,
            added_at=datetime.now(UTC),
        )
        await self._execute(
            self._upsert_playlist_video,
            [entry.playlist_id, entry.video_id, entry.sort_order, entry.added_at],
        )
        logger.info(
            "playlist_video_added",
            playlist_id=playlist_id,
            video_id=video_id,
            sort_order=sort_order,
        )
        return entry
