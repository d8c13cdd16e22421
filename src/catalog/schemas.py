"""Pydantic schemas for catalog reads."""

from pydantic import BaseModel, ConfigDict

from .models import PlaylistVideo, Subject, Video


class SubjectResponse(BaseModel):
    """Subject response."""

    model_config = ConfigDict(from_attributes=True)

    subject_id: int
    name: str
    name_chinese: str | None = None
    color_code: str | None = None
    grade_level: str | None = None
    sort_order: int = 0

    @classmethod
    def from_entity(cls, entity: Subject) -> "SubjectResponse":
        return cls.model_validate(entity)


class VideoResponse(BaseModel):
    """Video response."""

    model_config = ConfigDict(from_attributes=True)

    video_id: int
    subject_id: int | None = None
    title: str
    title_chinese: str | None = None
    description: str | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None
    duration_seconds: int = 0
    grade_level: str | None = None
    is_active: bool = True

    @classmethod
    def from_entity(cls, entity: Video) -> "VideoResponse":
        return cls.model_validate(entity)


class PlaylistVideoResponse(BaseModel):
    """Playlist entry with its video (None when the video was removed)."""

    video_id: int
    sort_order: int
    video: VideoResponse | None = None

    @classmethod
    def from_entity(
        cls, entry: PlaylistVideo, video: Video | None
    ) -> "PlaylistVideoResponse":
        return cls(
            video_id=entry.video_id,
            sort_order=entry.sort_order,
            video=VideoResponse.from_entity(video) if video else None,
        )


class SubjectListResponse(BaseModel):
    """List of subjects."""

    items: list[SubjectResponse]
    total: int


class PlaylistVideosResponse(BaseModel):
    """Ordered videos of a playlist."""

    playlist_id: int
    title: str
    items: list[PlaylistVideoResponse]
