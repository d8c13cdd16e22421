"""Tests for watch progress calculation and the report merge rules."""

from datetime import UTC, datetime, timedelta

import pytest

from src.progress.models import (
    COMPLETION_THRESHOLD,
    ProgressReport,
    UserLearningStats,
    WatchProgress,
    WatchProgressStatus,
    apply_report,
    compute_progress_percentage,
    is_completion_reached,
)


T0 = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def report(watch: int, duration: int | None = None, **kwargs) -> ProgressReport:
    return ProgressReport(watch_time_seconds=watch, total_duration_seconds=duration, **kwargs)


class TestComputeProgressPercentage:
    """Tests for compute_progress_percentage."""

    @pytest.mark.parametrize(
        "watch,duration,expected",
        [
            (0, 200, 0.0),
            (50, 200, 25.0),
            (180, 200, 90.0),
            (200, 200, 100.0),
        ],
    )
    def test_ratio(self, watch: int, duration: int, expected: float) -> None:
        assert compute_progress_percentage(watch, duration) == pytest.approx(expected)

    @pytest.mark.parametrize("duration", [0, None, -5])
    def test_unknown_duration_is_zero(self, duration: int | None) -> None:
        """No division by zero; unknown length yields 0%."""
        assert compute_progress_percentage(120, duration) == 0.0

    def test_not_capped(self) -> None:
        """Watch time beyond the duration is reported as is."""
        assert compute_progress_percentage(300, 200) == pytest.approx(150.0)


class TestCompletionThreshold:
    def test_threshold_value(self) -> None:
        assert COMPLETION_THRESHOLD == 90.0

    @pytest.mark.parametrize(
        "pct,expected",
        [(89.0, False), (89.999, False), (90.0, True), (100.0, True), (150.0, True)],
    )
    def test_boundary(self, pct: float, expected: bool) -> None:
        assert is_completion_reached(pct) is expected

    def test_89_vs_90_seconds_of_100(self) -> None:
        below = apply_report(None, "u", 1, report(89, 100), T0)
        at = apply_report(None, "u", 1, report(90, 100), T0)
        assert below.is_completed is False
        assert at.is_completed is True


class TestApplyReportFirstWrite:
    """First report for a (user, video) pair."""

    def test_creates_record(self) -> None:
        progress = apply_report(
            None,
            "user-1",
            101,
            report(50, 200, last_position_seconds=48, bookmark_notes="chapter 2"),
            T0,
        )

        assert progress.user_id == "user-1"
        assert progress.video_id == 101
        assert progress.watch_time_seconds == 50
        assert progress.total_duration_seconds == 200
        assert progress.progress_percentage == pytest.approx(25.0)
        assert progress.is_completed is False
        assert progress.completed_at is None
        assert progress.last_position_seconds == 48
        assert progress.bookmark_notes == "chapter 2"
        assert progress.first_watched_at == T0
        assert progress.last_watched_at == T0
        assert progress.revision == 1

    def test_completed_on_first_write(self) -> None:
        progress = apply_report(None, "user-1", 101, report(190, 200), T0)
        assert progress.is_completed is True
        assert progress.completed_at == T0
        assert progress.status == WatchProgressStatus.COMPLETED

    def test_missing_duration_stores_zero(self) -> None:
        progress = apply_report(None, "user-1", 101, report(120), T0)
        assert progress.total_duration_seconds == 0
        assert progress.progress_percentage == 0.0
        assert progress.is_completed is False


class TestApplyReportUpdate:
    """Reports on top of an existing record."""

    def test_watch_sequence_keeps_completion(self) -> None:
        """25% -> 95% (completes) -> 5%: stays completed with the first timestamp."""
        t1, t2, t3 = T0, T0 + timedelta(minutes=5), T0 + timedelta(minutes=10)

        first = apply_report(None, "u", 7, report(50, 200), t1)
        assert first.progress_percentage == pytest.approx(25.0)
        assert first.is_completed is False

        second = apply_report(first, "u", 7, report(190, 200), t2)
        assert second.progress_percentage == pytest.approx(95.0)
        assert second.is_completed is True
        assert second.completed_at == t2

        third = apply_report(second, "u", 7, report(10, 200), t3)
        assert third.watch_time_seconds == 10
        assert third.progress_percentage == pytest.approx(5.0)
        assert third.is_completed is True
        assert third.completed_at == t2
        assert third.first_watched_at == t1
        assert third.last_watched_at == t3
        assert third.revision == 3

    def test_duration_falls_back_to_stored(self) -> None:
        existing = apply_report(None, "u", 7, report(20, 200), T0)
        progress = apply_report(existing, "u", 7, report(100), T0)
        assert progress.total_duration_seconds == 200
        assert progress.progress_percentage == pytest.approx(50.0)

    def test_new_duration_replaces_stored(self) -> None:
        existing = apply_report(None, "u", 7, report(20, 200), T0)
        progress = apply_report(existing, "u", 7, report(100, 100), T0)
        assert progress.total_duration_seconds == 100
        assert progress.is_completed is True

    def test_unsupplied_position_and_notes_are_kept(self) -> None:
        existing = apply_report(
            None, "u", 7, report(20, 200, last_position_seconds=20, bookmark_notes="n"), T0
        )
        progress = apply_report(existing, "u", 7, report(40), T0)
        assert progress.last_position_seconds == 20
        assert progress.bookmark_notes == "n"

    def test_same_report_twice_is_idempotent(self) -> None:
        """Re-applying a report changes nothing but the timestamps and revision."""
        existing = apply_report(None, "u", 7, report(150, 200), T0)
        again = apply_report(existing, "u", 7, report(150, 200), T0 + timedelta(seconds=1))
        for field in (
            "watch_time_seconds",
            "total_duration_seconds",
            "progress_percentage",
            "is_completed",
            "completed_at",
            "first_watched_at",
        ):
            assert getattr(again, field) == getattr(existing, field)

    def test_percentage_override(self) -> None:
        existing = apply_report(None, "u", 7, report(20, 200), T0)
        progress = apply_report(
            existing,
            "u",
            7,
            ProgressReport(watch_time_seconds=0, progress_percentage=0.0),
            T0,
        )
        assert progress.progress_percentage == 0.0

        completed = apply_report(
            progress,
            "u",
            7,
            ProgressReport(
                watch_time_seconds=200,
                total_duration_seconds=200,
                progress_percentage=100.0,
            ),
            T0,
        )
        assert completed.is_completed is True


class TestWatchProgressEntity:
    def test_empty(self) -> None:
        progress = WatchProgress.empty("u", 9)
        assert progress.watch_time_seconds == 0
        assert progress.progress_percentage == 0.0
        assert progress.is_completed is False
        assert progress.last_position_seconds == 0
        assert progress.status == WatchProgressStatus.NOT_STARTED

    def test_from_row_handles_nulls(self, make_row) -> None:
        row = make_row(watch_time_seconds=None, progress_percentage=None, revision=None)
        row.first_watched_at = datetime(2024, 1, 1)  # driver returns naive UTC
        progress = WatchProgress.from_row(row)
        assert progress.watch_time_seconds == 0
        assert progress.progress_percentage == 0.0
        assert progress.revision == 0
        assert progress.first_watched_at.tzinfo is UTC

    def test_in_progress_status(self, make_row) -> None:
        progress = WatchProgress.from_row(make_row(watch_time_seconds=10))
        assert progress.status == WatchProgressStatus.IN_PROGRESS


class TestUserLearningStats:
    def test_recomputed_from_rows(self) -> None:
        rows = [
            apply_report(None, "u", 1, report(190, 200), T0),
            apply_report(None, "u", 2, report(30, 200), T0),
            apply_report(None, "u", 3, report(100, 100), T0),
        ]
        stats = UserLearningStats.from_rows("u", rows)
        assert stats.total_watch_time == 320
        assert stats.videos_completed == 2
        assert stats.updated_at is not None

    def test_no_rows(self) -> None:
        stats = UserLearningStats.from_rows("u", [])
        assert stats.total_watch_time == 0
        assert stats.videos_completed == 0
