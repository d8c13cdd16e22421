"""Database models for the learning catalog.

Cassandra table definitions for:
- Subjects: Top-level grouping of videos (e.g. language, math)
- Videos: Playable lessons with their authoritative duration
- Playlists: Curated, ordered video lists

Catalog rows are read-mostly: the progress module only looks them up for
reference checks and display enrichment.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

SUBJECTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.subjects (
    subject_id INT PRIMARY KEY,
    name TEXT,
    name_chinese TEXT,
    color_code TEXT,
    grade_level TEXT,
    sort_order INT,
    created_at TIMESTAMP
)
"""

VIDEOS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.videos (
    video_id INT PRIMARY KEY,
    subject_id INT,
    title TEXT,
    title_chinese TEXT,
    description TEXT,
    video_url TEXT,
    thumbnail_url TEXT,
    duration_seconds INT,
    grade_level TEXT,
    is_active BOOLEAN,
    created_at TIMESTAMP
)
"""

PLAYLISTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.playlists (
    playlist_id INT PRIMARY KEY,
    title TEXT,
    description TEXT,
    is_public BOOLEAN,
    created_at TIMESTAMP
)
"""

# Membership partitioned by playlist; order kept in sort_order
PLAYLIST_VIDEOS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.playlist_videos (
    playlist_id INT,
    video_id INT,
    sort_order INT,
    added_at TIMESTAMP,
    PRIMARY KEY ((playlist_id), video_id)
)
"""

CATALOG_TABLES_CQL = [
    SUBJECTS_TABLE_CQL,
    VIDEOS_TABLE_CQL,
    PLAYLISTS_TABLE_CQL,
    PLAYLIST_VIDEOS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Subject:
    """Subject entity."""

    subject_id: int
    name: str
    name_chinese: str | None = None
    color_code: str | None = None
    grade_level: str | None = None
    sort_order: int = 0
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Subject":
        """Create Subject from Cassandra row."""
        return cls(
            subject_id=row.subject_id,
            name=row.name or "",
            name_chinese=row.name_chinese,
            color_code=row.color_code,
            grade_level=row.grade_level,
            sort_order=row.sort_order or 0,
            created_at=ensure_utc_aware(row.created_at),
        )


@dataclass
class Video:
    """Video entity.

    ``duration_seconds`` is the authoritative length used when a playlist
    marks the video as fully watched.
    """

    video_id: int
    subject_id: int | None
    title: str
    title_chinese: str | None = None
    description: str | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None
    duration_seconds: int = 0
    grade_level: str | None = None
    is_active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Video":
        """Create Video from Cassandra row."""
        return cls(
            video_id=row.video_id,
            subject_id=row.subject_id,
            title=row.title or "",
            title_chinese=row.title_chinese,
            description=row.description,
            video_url=row.video_url,
            thumbnail_url=row.thumbnail_url,
            duration_seconds=row.duration_seconds or 0,
            grade_level=row.grade_level,
            is_active=row.is_active if row.is_active is not None else True,
            created_at=ensure_utc_aware(row.created_at),
        )


@dataclass
class Playlist:
    """Playlist entity."""

    playlist_id: int
    title: str
    description: str | None = None
    is_public: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "Playlist":
        """Create Playlist from Cassandra row."""
        return cls(
            playlist_id=row.playlist_id,
            title=row.title or "",
            description=row.description,
            is_public=row.is_public if row.is_public is not None else True,
            created_at=ensure_utc_aware(row.created_at),
        )


@dataclass
class PlaylistVideo:
    """Membership of a video in a playlist."""

    playlist_id: int
    video_id: int
    sort_order: int = 0
    added_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "PlaylistVideo":
        """Create PlaylistVideo from Cassandra row."""
        return cls(
            playlist_id=row.playlist_id,
            video_id=row.video_id,
            sort_order=row.sort_order or 0,
            added_at=ensure_utc_aware(row.added_at),
        )
