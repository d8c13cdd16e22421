"""Tests for learning statistics and counter refresh."""

from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest
from cassandra import ConsistencyLevel
from cassandra.cluster import NoHostAvailable

from src.catalog.models import Subject, Video
from src.catalog.service import CatalogService, CatalogUnavailableError
from src.progress.exceptions import StorageFailureError
from src.progress.models import WatchProgress
from src.progress.stats import (
    RECENT_ACTIVITY_LIMIT,
    StatsService,
    group_by_subject,
    recent_activity,
    summarize_overall,
)


USER_ID = "user-1"
BASE = datetime(2024, 5, 1, tzinfo=UTC)

VIDEOS = {
    101: Video(101, 1, "Fractions", "分数"),
    102: Video(102, 1, "Decimals"),
    201: Video(201, 2, "Poems"),
    301: Video(301, None, "Orphan"),
}
SUBJECTS = {
    1: Subject(1, "Mathematics", "数学", "#3B82F6", sort_order=2),
    2: Subject(2, "Chinese", "语文", "#EF4444", sort_order=1),
}


@pytest.fixture
def catalog():
    catalog = Mock(spec=CatalogService)
    catalog.get_videos.return_value = VIDEOS
    catalog.get_subjects.return_value = SUBJECTS
    return catalog


@pytest.fixture
def stats_service(mock_session, catalog) -> StatsService:
    return StatsService(session=mock_session, keyspace="test_keyspace", catalog=catalog)


def progress(video_id: int, pct: float, watch: int = 0, completed: bool = False, minutes: int = 0):
    return WatchProgress(
        user_id=USER_ID,
        video_id=video_id,
        watch_time_seconds=watch,
        total_duration_seconds=200,
        progress_percentage=pct,
        is_completed=completed,
        last_watched_at=BASE + timedelta(minutes=minutes),
        revision=1,
    )


class TestAggregation:
    """Pure aggregation helpers."""

    def test_overall_empty(self):
        overall = summarize_overall([])
        assert overall.total_videos_watched == 0
        assert overall.total_completed == 0
        assert overall.total_watch_time == 0
        assert overall.average_progress == 0.0

    def test_overall(self):
        rows = [
            progress(101, 100.0, watch=200, completed=True),
            progress(102, 50.0, watch=100),
            progress(201, 0.0, watch=0),
        ]
        overall = summarize_overall(rows)
        assert overall.total_videos_watched == 3
        assert overall.total_completed == 1
        assert overall.total_watch_time == 300
        assert overall.average_progress == pytest.approx(50.0)

    def test_by_subject(self):
        rows = [
            progress(101, 100.0, completed=True),
            progress(102, 50.0),
            progress(201, 30.0),
            progress(301, 80.0),  # no subject
            progress(999, 80.0),  # video left the catalog
        ]

        result = group_by_subject(rows, VIDEOS, SUBJECTS)

        # ordered by subject sort_order
        assert [s.subject_id for s in result] == [2, 1]
        chinese, maths = result
        assert chinese.videos_watched == 1
        assert chinese.avg_progress == pytest.approx(30.0)
        assert maths.subject_name == "Mathematics"
        assert maths.subject_name_chinese == "数学"
        assert maths.color_code == "#3B82F6"
        assert maths.videos_watched == 2
        assert maths.completed_count == 1
        assert maths.avg_progress == pytest.approx(75.0)

    def test_recent_activity_limited_and_newest_first(self):
        rows = [progress(100 + i, float(i), minutes=i) for i in range(15)]

        items = recent_activity(rows, VIDEOS, SUBJECTS)

        assert len(items) == RECENT_ACTIVITY_LIMIT == 10
        assert items[0].video_id == 114
        assert items[-1].video_id == 105
        assert [i.last_watched_at for i in items] == sorted(
            (i.last_watched_at for i in items), reverse=True
        )

    def test_recent_activity_enrichment(self):
        items = recent_activity([progress(101, 40.0)], VIDEOS, SUBJECTS)
        assert items[0].title == "Fractions"
        assert items[0].title_chinese == "分数"
        assert items[0].subject_name == "Mathematics"


class TestGetLearningStats:
    @pytest.mark.asyncio
    async def test_user_without_progress(self, stats_service, mock_session, catalog, make_result):
        mock_session.aexecute.return_value = make_result([])

        stats = await stats_service.get_learning_stats(USER_ID)

        assert stats.overall.total_videos_watched == 0
        assert stats.overall.average_progress == 0.0
        assert stats.by_subject == []
        assert stats.recent_activity == []
        catalog.get_videos.assert_not_called()

    @pytest.mark.asyncio
    async def test_full_stats(self, stats_service, mock_session, make_row, make_result):
        mock_session.aexecute.return_value = make_result(
            [
                make_row(video_id=101, watch_time_seconds=190, progress_percentage=95.0, is_completed=True),
                make_row(video_id=201, watch_time_seconds=20, progress_percentage=10.0),
            ]
        )

        stats = await stats_service.get_learning_stats(USER_ID)

        assert stats.overall.total_videos_watched == 2
        assert stats.overall.total_completed == 1
        assert stats.overall.total_watch_time == 210
        assert len(stats.by_subject) == 2
        assert len(stats.recent_activity) == 2

        body = stats.model_dump(by_alias=True)
        assert set(body) == {"overall", "bySubject", "recentActivity"}

    @pytest.mark.asyncio
    async def test_storage_failure(self, stats_service, mock_session):
        mock_session.aexecute.side_effect = NoHostAvailable("no hosts", {})

        with pytest.raises(StorageFailureError):
            await stats_service.get_learning_stats(USER_ID)

    @pytest.mark.asyncio
    async def test_catalog_failure(self, stats_service, mock_session, catalog, make_row, make_result):
        mock_session.aexecute.return_value = make_result([make_row()])
        catalog.get_videos.side_effect = CatalogUnavailableError()

        with pytest.raises(StorageFailureError):
            await stats_service.get_learning_stats(USER_ID)


class TestRefreshUserCounters:
    def test_progress_read_is_serial(self, stats_service):
        assert (
            stats_service._get_user_progress.consistency_level
            == ConsistencyLevel.LOCAL_SERIAL
        )

    @pytest.mark.asyncio
    async def test_recomputes_and_writes(self, stats_service, mock_session, make_row, make_result):
        mock_session.aexecute.side_effect = [
            make_result(
                [
                    make_row(video_id=101, watch_time_seconds=190, is_completed=True),
                    make_row(video_id=102, watch_time_seconds=60),
                ]
            ),
            make_result(),
        ]

        counters = await stats_service.refresh_user_counters(USER_ID)

        assert counters.total_watch_time == 250
        assert counters.videos_completed == 1
        write = mock_session.aexecute.call_args_list[1]
        assert write.args[0] is stats_service._update_user_counters
        assert write.args[1][0] == 250
        assert write.args[1][1] == 1
        assert write.args[1][3] == USER_ID

    @pytest.mark.asyncio
    async def test_repeated_refresh_is_stable(self, stats_service, mock_session, make_row, make_result):
        rows = [make_row(video_id=101, watch_time_seconds=100, is_completed=True)]
        mock_session.aexecute.side_effect = [
            make_result(rows),
            make_result(),
            make_result(rows),
            make_result(),
        ]

        first = await stats_service.refresh_user_counters(USER_ID)
        second = await stats_service.refresh_user_counters(USER_ID)

        assert (first.total_watch_time, first.videos_completed) == (
            second.total_watch_time,
            second.videos_completed,
        )

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, stats_service, mock_session):
        mock_session.aexecute.side_effect = RuntimeError("boom")

        assert await stats_service.refresh_user_counters(USER_ID) is None

    @pytest.mark.asyncio
    async def test_get_user_counters_defaults(self, stats_service, mock_session, make_result):
        mock_session.aexecute.return_value = make_result([])

        counters = await stats_service.get_user_counters(USER_ID)

        assert counters.user_id == USER_ID
        assert counters.total_watch_time == 0
        assert counters.videos_completed == 0
