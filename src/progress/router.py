"""Video watch progress API endpoints.

Provides routes for:
- Progress reports from the player
- Progress queries, listings and learning statistics
- Playlist completion toggles
- Administrative counter refresh and cleanup
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.auth.dependencies import AdminUser, ReaderUser, StudentUser
from src.config.settings import Settings, get_settings

from .dependencies import ProgressServiceDep, StatsServiceDep, handle_progress_error
from .exceptions import ProgressError
from .schemas import (
    LearningStatsResponse,
    MessageResponse,
    PlaylistCompletionRequest,
    PlaylistProgressResponse,
    ProgressListResponse,
    ReportProgressRequest,
    UserCountersResponse,
    WatchProgressResponse,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])
playlists_router = APIRouter(prefix="/v1/playlists", tags=["playlists"])

SettingsDep = Annotated[Settings, Depends(get_settings)]


# ==============================================================================
# Progress Reports
# ==============================================================================


@router.post(
    "/update",
    response_model=WatchProgressResponse,
    summary="Report video progress",
)
async def report_progress(
    data: ReportProgressRequest,
    progress_service: ProgressServiceDep,
    user: StudentUser,
) -> WatchProgressResponse:
    """Record watch time for a video.

    Sent periodically by the player. The video is completed once 90% has
    been watched and stays completed afterwards.
    """
    try:
        progress = await progress_service.report_progress(
            user_id=user.id,
            video_id=data.video_id,
            watch_time_seconds=data.watch_time_seconds,
            total_duration_seconds=data.total_duration_seconds,
            last_position_seconds=data.last_position_seconds,
            bookmark_notes=data.bookmark_notes,
        )
        return WatchProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Progress Queries
# ==============================================================================


@router.get(
    "",
    response_model=ProgressListResponse,
    summary="List my progress",
)
async def list_progress(
    progress_service: ProgressServiceDep,
    user: ReaderUser,
    settings: SettingsDep,
    completed: bool | None = Query(None, description="Filter by completion"),
    subject_id: int | None = Query(None, description="Filter by subject"),
    grade_level: str | None = Query(None, description="Filter by grade level"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
) -> ProgressListResponse:
    """List progress rows, most recently watched first."""
    try:
        return await progress_service.list_progress(
            user_id=user.id,
            completed=completed,
            subject_id=subject_id,
            grade_level=grade_level,
            page=page,
            limit=min(limit, settings.progress_page_size_max),
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/video/{video_id}",
    response_model=WatchProgressResponse,
    summary="Get progress for a video",
)
async def get_video_progress(
    video_id: int,
    progress_service: ProgressServiceDep,
    user: ReaderUser,
) -> WatchProgressResponse:
    """Progress for one video; zeros when never watched."""
    try:
        progress = await progress_service.get_progress(user.id, video_id)
        return WatchProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/stats",
    response_model=LearningStatsResponse,
    response_model_by_alias=True,
    summary="Get learning statistics",
)
async def get_learning_stats(
    stats_service: StatsServiceDep,
    user: ReaderUser,
) -> LearningStatsResponse:
    """Overall totals, per-subject breakdown and the 10 latest videos."""
    try:
        return await stats_service.get_learning_stats(user.id)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/counters",
    response_model=UserCountersResponse,
    summary="Get my counters",
)
async def get_user_counters(
    stats_service: StatsServiceDep,
    user: ReaderUser,
) -> UserCountersResponse:
    """Stored counters (may lag a moment behind the latest report)."""
    try:
        counters = await stats_service.get_user_counters(user.id)
        return UserCountersResponse.from_entity(counters)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Administration
# ==============================================================================


@router.post(
    "/users/{user_id}/refresh-counters",
    response_model=UserCountersResponse,
    summary="Recompute a user's counters",
)
async def refresh_user_counters(
    user_id: str,
    stats_service: StatsServiceDep,
    admin: AdminUser,
) -> UserCountersResponse:
    """Recompute counters synchronously (admin only)."""
    counters = await stats_service.refresh_user_counters(user_id)
    if counters is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Counter refresh failed",
        )
    return UserCountersResponse.from_entity(counters)


@router.delete(
    "/users/{user_id}",
    response_model=MessageResponse,
    summary="Delete a user's progress",
)
async def delete_user_progress(
    user_id: str,
    progress_service: ProgressServiceDep,
    admin: AdminUser,
) -> MessageResponse:
    """Remove every progress row of a user and reset counters (admin only)."""
    try:
        deleted = await progress_service.delete_user_progress(user_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return MessageResponse(message=f"Deleted {deleted} progress records")


# ==============================================================================
# Playlist Endpoints
# ==============================================================================


@playlists_router.get(
    "/{playlist_id}/progress",
    response_model=PlaylistProgressResponse,
    summary="Get playlist progress",
)
async def get_playlist_progress(
    playlist_id: int,
    progress_service: ProgressServiceDep,
    user: ReaderUser,
) -> PlaylistProgressResponse:
    """Completion of each video of a playlist, in playlist order."""
    try:
        return await progress_service.get_playlist_progress(user.id, playlist_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@playlists_router.post(
    "/{playlist_id}/progress",
    response_model=WatchProgressResponse,
    summary="Mark a playlist video",
)
async def mark_playlist_video(
    playlist_id: int,
    data: PlaylistCompletionRequest,
    progress_service: ProgressServiceDep,
    user: StudentUser,
) -> WatchProgressResponse:
    """Mark a playlist video as watched (or reset it).

    Resetting cannot clear a completion that was already recorded.
    """
    try:
        progress = await progress_service.mark_playlist_video_completion(
            user_id=user.id,
            video_id=data.video_id,
            playlist_id=playlist_id,
            completed=data.completed,
        )
        return WatchProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e
