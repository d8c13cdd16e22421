"""Database models for video watch progress.

Cassandra table definitions for:
- Watch progress: One row per (user, video) with position and completion
- User profiles: Denormalized per-user counters (watch time, completions)

Architecture: watch_progress is partitioned by user_id so that every
per-user aggregate (counters, statistics, listings) is a single-partition
read. Rows carry a `revision` used as the compare-and-swap guard of the
lightweight-transaction upsert.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any


# Completion threshold: 90% watched = complete
COMPLETION_THRESHOLD = 90.0


class WatchProgressStatus(str, Enum):
    """Watch progress status."""

    NOT_STARTED = "not_started"  # No row yet
    IN_PROGRESS = "in_progress"  # Watched partially
    COMPLETED = "completed"  # Reached the threshold at least once (sticky)


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def compute_progress_percentage(
    watch_time_seconds: int, total_duration_seconds: int | None
) -> float:
    """Percentage of the video watched; 0 when the duration is unknown."""
    if not total_duration_seconds or total_duration_seconds <= 0:
        return 0.0
    return (watch_time_seconds / total_duration_seconds) * 100


def is_completion_reached(progress_percentage: float) -> bool:
    """Check the percentage against the completion threshold."""
    return progress_percentage >= COMPLETION_THRESHOLD


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Watch progress per user and video
# Partition key: user_id (all of a user's rows in one partition)
# Clustering: video_id (one row per video)
WATCH_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.watch_progress (
    user_id TEXT,
    video_id INT,
    watch_time_seconds INT,
    total_duration_seconds INT,
    progress_percentage DOUBLE,
    is_completed BOOLEAN,
    last_position_seconds INT,
    bookmark_notes TEXT,
    first_watched_at TIMESTAMP,
    last_watched_at TIMESTAMP,
    completed_at TIMESTAMP,
    revision INT,
    PRIMARY KEY ((user_id), video_id)
) WITH CLUSTERING ORDER BY (video_id ASC)
"""

# Denormalized per-user counters (recomputed, never incremented)
USER_PROFILES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_profiles (
    user_id TEXT PRIMARY KEY,
    total_watch_time BIGINT,
    videos_completed INT,
    updated_at TIMESTAMP
)
"""

PROGRESS_TABLES_CQL = [
    WATCH_PROGRESS_TABLE_CQL,
    USER_PROFILES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class ProgressReport:
    """A single progress report from a player.

    ``None`` means "not supplied": the stored value is kept.
    ``progress_percentage`` overrides the computed percentage (playlist
    completion credits 100% / 0% directly).
    """

    watch_time_seconds: int
    total_duration_seconds: int | None = None
    last_position_seconds: int | None = None
    bookmark_notes: str | None = None
    progress_percentage: float | None = None


class WatchProgress:
    """Watch progress entity for a specific user and video.

    Attributes:
        user_id: Opaque user identifier
        video_id: Video id
        watch_time_seconds: Client-reported watch time
        total_duration_seconds: Video length in effect for this row
        progress_percentage: Derived from watch time and duration
        is_completed: Sticky completion flag
        last_position_seconds: Playback cursor for resume
        bookmark_notes: Free text attached by the learner
        first_watched_at: First report timestamp
        last_watched_at: Last report timestamp
        completed_at: First completion timestamp (never overwritten)
        revision: Write counter (0 = not persisted)
    """

    def __init__(
        self,
        user_id: str,
        video_id: int,
        watch_time_seconds: int = 0,
        total_duration_seconds: int = 0,
        progress_percentage: float = 0.0,
        is_completed: bool = False,
        last_position_seconds: int = 0,
        bookmark_notes: str | None = None,
        first_watched_at: datetime | None = None,
        last_watched_at: datetime | None = None,
        completed_at: datetime | None = None,
        revision: int = 0,
    ):
        self.user_id = user_id
        self.video_id = video_id
        self.watch_time_seconds = watch_time_seconds
        self.total_duration_seconds = total_duration_seconds
        self.progress_percentage = progress_percentage
        self.is_completed = is_completed
        self.last_position_seconds = last_position_seconds
        self.bookmark_notes = bookmark_notes
        self.first_watched_at = ensure_utc_aware(first_watched_at)
        self.last_watched_at = ensure_utc_aware(last_watched_at)
        self.completed_at = ensure_utc_aware(completed_at)
        self.revision = revision

    @property
    def status(self) -> WatchProgressStatus:
        """Position in the NotStarted -> InProgress -> Completed lifecycle."""
        if self.is_completed:
            return WatchProgressStatus.COMPLETED
        if self.revision == 0:
            return WatchProgressStatus.NOT_STARTED
        return WatchProgressStatus.IN_PROGRESS

    @classmethod
    def empty(cls, user_id: str, video_id: int) -> "WatchProgress":
        """Zero-value progress for a video the user never watched."""
        return cls(user_id=user_id, video_id=video_id)

    @classmethod
    def from_row(cls, row: Any) -> "WatchProgress":
        """Create WatchProgress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            video_id=row.video_id,
            watch_time_seconds=row.watch_time_seconds or 0,
            total_duration_seconds=row.total_duration_seconds or 0,
            progress_percentage=row.progress_percentage or 0.0,
            is_completed=bool(row.is_completed),
            last_position_seconds=row.last_position_seconds or 0,
            bookmark_notes=row.bookmark_notes,
            first_watched_at=row.first_watched_at,
            last_watched_at=row.last_watched_at,
            completed_at=row.completed_at,
            revision=row.revision or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "video_id": self.video_id,
            "watch_time_seconds": self.watch_time_seconds,
            "total_duration_seconds": self.total_duration_seconds,
            "progress_percentage": self.progress_percentage,
            "is_completed": self.is_completed,
            "last_position_seconds": self.last_position_seconds,
            "bookmark_notes": self.bookmark_notes,
            "first_watched_at": self.first_watched_at,
            "last_watched_at": self.last_watched_at,
            "completed_at": self.completed_at,
            "revision": self.revision,
        }

    def __repr__(self) -> str:
        return (
            f"<WatchProgress user={self.user_id} video={self.video_id} "
            f"{self.status.value} {self.progress_percentage:.1f}%>"
        )


def apply_report(
    existing: WatchProgress | None,
    user_id: str,
    video_id: int,
    report: ProgressReport,
    now: datetime,
) -> WatchProgress:
    """Compute the record that results from applying a report.

    Pure function: the caller persists the result. Completion is sticky,
    so an already completed record stays completed and keeps its
    ``completed_at`` whatever the new percentage is.
    """
    if existing is None:
        duration = report.total_duration_seconds or 0
    elif report.total_duration_seconds is not None:
        duration = report.total_duration_seconds
    else:
        duration = existing.total_duration_seconds

    if report.progress_percentage is not None:
        percentage = report.progress_percentage
    else:
        percentage = compute_progress_percentage(report.watch_time_seconds, duration)
    reached = is_completion_reached(percentage)

    if existing is None:
        return WatchProgress(
            user_id=user_id,
            video_id=video_id,
            watch_time_seconds=report.watch_time_seconds,
            total_duration_seconds=duration,
            progress_percentage=percentage,
            is_completed=reached,
            last_position_seconds=report.last_position_seconds or 0,
            bookmark_notes=report.bookmark_notes,
            first_watched_at=now,
            last_watched_at=now,
            completed_at=now if reached else None,
            revision=1,
        )

    is_completed = existing.is_completed or reached
    completed_at = existing.completed_at
    if completed_at is None and is_completed:
        completed_at = now

    return WatchProgress(
        user_id=user_id,
        video_id=video_id,
        watch_time_seconds=report.watch_time_seconds,
        total_duration_seconds=duration,
        progress_percentage=percentage,
        is_completed=is_completed,
        last_position_seconds=(
            report.last_position_seconds
            if report.last_position_seconds is not None
            else existing.last_position_seconds
        ),
        bookmark_notes=(
            report.bookmark_notes
            if report.bookmark_notes is not None
            else existing.bookmark_notes
        ),
        first_watched_at=existing.first_watched_at or now,
        last_watched_at=now,
        completed_at=completed_at,
        revision=existing.revision + 1,
    )


class UserLearningStats:
    """Denormalized per-user counters stored on the user profile.

    Attributes:
        user_id: Opaque user identifier
        total_watch_time: Sum of watch_time_seconds over all the user's rows
        videos_completed: Number of the user's rows with is_completed
        updated_at: Last recomputation timestamp
    """

    def __init__(
        self,
        user_id: str,
        total_watch_time: int = 0,
        videos_completed: int = 0,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.total_watch_time = total_watch_time
        self.videos_completed = videos_completed
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_rows(cls, user_id: str, rows: list[WatchProgress]) -> "UserLearningStats":
        """Recompute counters from the full set of a user's progress rows."""
        return cls(
            user_id=user_id,
            total_watch_time=sum(p.watch_time_seconds for p in rows),
            videos_completed=sum(1 for p in rows if p.is_completed),
            updated_at=datetime.now(UTC),
        )

    @classmethod
    def from_row(cls, row: Any) -> "UserLearningStats":
        """Create UserLearningStats from Cassandra row."""
        return cls(
            user_id=row.user_id,
            total_watch_time=row.total_watch_time or 0,
            videos_completed=row.videos_completed or 0,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<UserLearningStats user={self.user_id} "
            f"watch={self.total_watch_time}s completed={self.videos_completed}>"
        )
