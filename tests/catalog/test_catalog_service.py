"""Tests for CatalogService lookups."""

from types import SimpleNamespace

import pytest
from cassandra import OperationTimedOut

from src.catalog.models import Video
from src.catalog.service import CatalogService, CatalogUnavailableError


def video_row(video_id: int, subject_id: int = 1, duration: int | None = 300):
    return SimpleNamespace(
        video_id=video_id,
        subject_id=subject_id,
        title=f"Video {video_id}",
        title_chinese=None,
        description=None,
        video_url=None,
        thumbnail_url=None,
        duration_seconds=duration,
        grade_level="G4",
        is_active=None,
        created_at=None,
    )


def subject_row(subject_id: int, name: str, sort_order: int | None):
    return SimpleNamespace(
        subject_id=subject_id,
        name=name,
        name_chinese=None,
        color_code=None,
        grade_level=None,
        sort_order=sort_order,
        created_at=None,
    )


def membership_row(video_id: int, sort_order: int):
    return SimpleNamespace(playlist_id=1, video_id=video_id, sort_order=sort_order, added_at=None)


@pytest.fixture
def catalog_service(mock_session) -> CatalogService:
    return CatalogService(session=mock_session, keyspace="test_keyspace")


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_video(self, catalog_service, mock_session, make_result):
        mock_session.aexecute.return_value = make_result([video_row(101, duration=None)])

        video = await catalog_service.get_video(101)

        assert video.video_id == 101
        assert video.duration_seconds == 0
        assert video.is_active is True

    @pytest.mark.asyncio
    async def test_get_video_missing(self, catalog_service, mock_session, make_result):
        mock_session.aexecute.return_value = make_result([])
        assert await catalog_service.get_video(999) is None

    @pytest.mark.asyncio
    async def test_get_videos_batches_with_in_query(
        self, catalog_service, mock_session, make_result
    ):
        mock_session.aexecute.return_value = make_result([video_row(101), video_row(102)])

        videos = await catalog_service.get_videos([102, 101, 102])

        assert set(videos) == {101, 102}
        call = mock_session.aexecute.await_args
        assert call.args[0] is catalog_service._get_videos
        assert call.args[1] == [[101, 102]]

    @pytest.mark.asyncio
    async def test_get_videos_empty_skips_query(self, catalog_service, mock_session):
        assert await catalog_service.get_videos([]) == {}
        mock_session.aexecute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_subjects_ignores_none(self, catalog_service, mock_session):
        assert await catalog_service.get_subjects([None]) == {}
        mock_session.aexecute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_subjects_sorted(self, catalog_service, mock_session, make_result):
        mock_session.aexecute.return_value = make_result(
            [subject_row(1, "Maths", 2), subject_row(2, "Chinese", 1), subject_row(3, "Art", None)]
        )

        subjects = await catalog_service.list_subjects()

        assert [s.name for s in subjects] == ["Art", "Chinese", "Maths"]

    @pytest.mark.asyncio
    async def test_playlist_videos_in_order(self, catalog_service, mock_session, make_result):
        mock_session.aexecute.return_value = make_result(
            [membership_row(101, 2), membership_row(102, 0), membership_row(103, 1)]
        )

        entries = await catalog_service.get_playlist_videos(1)

        assert [e.video_id for e in entries] == [102, 103, 101]

    @pytest.mark.asyncio
    async def test_driver_error_becomes_catalog_unavailable(
        self, catalog_service, mock_session
    ):
        mock_session.aexecute.side_effect = OperationTimedOut("timed out")

        with pytest.raises(CatalogUnavailableError):
            await catalog_service.get_video(101)


class TestWrites:
    @pytest.mark.asyncio
    async def test_save_video_sets_created_at(self, catalog_service, mock_session):
        video = await catalog_service.save_video(Video(101, 1, "Fractions", duration_seconds=600))

        assert video.created_at is not None
        call = mock_session.aexecute.await_args
        assert call.args[0] is catalog_service._upsert_video
        assert call.args[1][0] == 101
        assert call.args[1][7] == 600

    @pytest.mark.asyncio
    async def test_add_video_to_playlist(self, catalog_service, mock_session):
        entry = await catalog_service.add_video_to_playlist(1, 101, sort_order=3)

        assert entry.sort_order == 3
        assert mock_session.aexecute.await_args.args[1][:3] == [1, 101, 3]
