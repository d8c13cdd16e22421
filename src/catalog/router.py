"""Catalog read endpoints."""

from fastapi import APIRouter, HTTPException, status

from .dependencies import CatalogServiceDep
from .schemas import (
    PlaylistVideoResponse,
    PlaylistVideosResponse,
    SubjectListResponse,
    SubjectResponse,
    VideoResponse,
)


router = APIRouter(prefix="/v1", tags=["catalog"])


@router.get(
    "/subjects",
    response_model=SubjectListResponse,
    summary="List subjects",
)
async def list_subjects(catalog_service: CatalogServiceDep) -> SubjectListResponse:
    """List all subjects in display order."""
    subjects = await catalog_service.list_subjects()
    return SubjectListResponse(
        items=[SubjectResponse.from_entity(s) for s in subjects],
        total=len(subjects),
    )


@router.get(
    "/videos/{video_id}",
    response_model=VideoResponse,
    summary="Get video",
)
async def get_video(video_id: int, catalog_service: CatalogServiceDep) -> VideoResponse:
    """Get a single video's metadata."""
    video = await catalog_service.get_video(video_id)
    if video is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not found",
        )
    return VideoResponse.from_entity(video)


@router.get(
    "/playlists/{playlist_id}/videos",
    response_model=PlaylistVideosResponse,
    summary="Get playlist videos",
)
async def get_playlist_videos(
    playlist_id: int, catalog_service: CatalogServiceDep
) -> PlaylistVideosResponse:
    """Get the videos of a playlist in playlist order."""
    playlist = await catalog_service.get_playlist(playlist_id)
    if playlist is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Playlist not found",
        )

    entries = await catalog_service.get_playlist_videos(playlist_id)
    videos = await catalog_service.get_videos(e.video_id for e in entries)
    return PlaylistVideosResponse(
        playlist_id=playlist.playlist_id,
        title=playlist.title,
        items=[
            PlaylistVideoResponse.from_entity(e, videos.get(e.video_id))
            for e in entries
        ],
    )
