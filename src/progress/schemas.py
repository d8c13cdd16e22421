"""Pydantic schemas for video watch progress.

Request and response models for:
- Progress reports from the player
- Progress queries and listings
- Playlist completion toggles
- Learning statistics
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.catalog.models import Subject, Video

from .models import UserLearningStats, WatchProgress, WatchProgressStatus


# ==============================================================================
# Progress Report Schemas
# ==============================================================================


class ReportProgressRequest(BaseModel):
    """Progress report sent by the player."""

    video_id: int = Field(..., description="Video id")
    watch_time_seconds: int = Field(..., ge=0, description="Seconds watched")
    total_duration_seconds: int | None = Field(
        None, ge=0, description="Video length; stored value is used when omitted"
    )
    last_position_seconds: int | None = Field(
        None, ge=0, description="Playback cursor for resume"
    )
    bookmark_notes: str | None = Field(None, max_length=5000)


class WatchProgressResponse(BaseModel):
    """Watch progress for a single video."""

    model_config = ConfigDict(from_attributes=True)

    video_id: int
    status: WatchProgressStatus
    watch_time_seconds: int = 0
    total_duration_seconds: int = 0
    progress_percentage: float = Field(0.0, description="Not capped at 100")
    is_completed: bool = False
    last_position_seconds: int = 0
    bookmark_notes: str | None = None
    first_watched_at: datetime | None = None
    last_watched_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: WatchProgress) -> "WatchProgressResponse":
        """Create response from entity."""
        return cls(
            video_id=entity.video_id,
            status=entity.status,
            watch_time_seconds=entity.watch_time_seconds,
            total_duration_seconds=entity.total_duration_seconds,
            progress_percentage=entity.progress_percentage,
            is_completed=entity.is_completed,
            last_position_seconds=entity.last_position_seconds,
            bookmark_notes=entity.bookmark_notes,
            first_watched_at=entity.first_watched_at,
            last_watched_at=entity.last_watched_at,
            completed_at=entity.completed_at,
        )


# ==============================================================================
# Listing Schemas
# ==============================================================================


class ProgressListItem(WatchProgressResponse):
    """Progress row enriched with video metadata."""

    title: str | None = None
    title_chinese: str | None = None
    thumbnail_url: str | None = None
    subject_id: int | None = None
    subject_name: str | None = None

    @classmethod
    def from_parts(
        cls,
        entity: WatchProgress,
        video: Video | None,
        subject: Subject | None,
    ) -> "ProgressListItem":
        base = WatchProgressResponse.from_entity(entity).model_dump()
        return cls(
            **base,
            title=video.title if video else None,
            title_chinese=video.title_chinese if video else None,
            thumbnail_url=video.thumbnail_url if video else None,
            subject_id=video.subject_id if video else None,
            subject_name=subject.name if subject else None,
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ProgressListResponse(BaseModel):
    """Paginated progress listing, most recently watched first."""

    progress: list[ProgressListItem]
    pagination: Pagination


# ==============================================================================
# Playlist Schemas
# ==============================================================================


class PlaylistCompletionRequest(BaseModel):
    """Mark a playlist video as completed or not completed."""

    video_id: int = Field(..., description="Video id (must belong to the playlist)")
    completed: bool = Field(..., description="Completion toggle")


class PlaylistVideoProgress(BaseModel):
    """Per-video completion inside a playlist."""

    playlist_id: int
    video_id: int
    sort_order: int = 0
    completed: bool = False
    progress_percentage: float = 0.0
    last_watched: datetime | None = None


class PlaylistProgressResponse(BaseModel):
    playlist_id: int
    items: list[PlaylistVideoProgress]
    completed_count: int
    total: int


# ==============================================================================
# Statistics Schemas
# ==============================================================================


class UserCountersResponse(BaseModel):
    """Denormalized counters from the user profile."""

    user_id: str
    total_watch_time: int = 0
    videos_completed: int = 0
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: UserLearningStats) -> "UserCountersResponse":
        return cls(
            user_id=entity.user_id,
            total_watch_time=entity.total_watch_time,
            videos_completed=entity.videos_completed,
            updated_at=entity.updated_at,
        )


class OverallStats(BaseModel):
    total_videos_watched: int = 0
    total_completed: int = 0
    total_watch_time: int = 0
    average_progress: float = 0.0


class SubjectStats(BaseModel):
    subject_id: int
    subject_name: str
    subject_name_chinese: str | None = None
    color_code: str | None = None
    videos_watched: int = 0
    completed_count: int = 0
    avg_progress: float = 0.0


class RecentActivityItem(BaseModel):
    video_id: int
    title: str | None = None
    title_chinese: str | None = None
    thumbnail_url: str | None = None
    subject_name: str | None = None
    progress_percentage: float = 0.0
    is_completed: bool = False
    last_watched_at: datetime | None = None


class LearningStatsResponse(BaseModel):
    """Learning statistics for the dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    overall: OverallStats
    by_subject: list[SubjectStats] = Field(
        default_factory=list, serialization_alias="bySubject"
    )
    recent_activity: list[RecentActivityItem] = Field(
        default_factory=list, serialization_alias="recentActivity"
    )


# ==============================================================================
# Generic Response
# ==============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
    success: bool = True
