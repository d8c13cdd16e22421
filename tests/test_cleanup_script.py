"""Tests for the progress cleanup script."""

from unittest.mock import Mock

import pytest

from scripts.cleanup_progress import cleanup_users, parse_args
from src.progress.service import ProgressService


@pytest.fixture
def progress_service():
    return Mock(spec=ProgressService)


@pytest.mark.asyncio
async def test_cleanup_deletes_each_user(progress_service):
    progress_service.delete_user_progress.side_effect = [3, 0]

    removed = await cleanup_users(progress_service, ["u1", "u2"])

    assert removed == {"u1": 3, "u2": 0}
    assert progress_service.delete_user_progress.await_count == 2
    progress_service.get_user_progress.assert_not_awaited()


@pytest.mark.asyncio
async def test_dry_run_only_counts(progress_service):
    progress_service.get_user_progress.return_value = [object(), object()]

    removed = await cleanup_users(progress_service, ["u1"], dry_run=True)

    assert removed == {"u1": 2}
    progress_service.delete_user_progress.assert_not_awaited()


def test_parse_args():
    args = parse_args(["u1", "u2", "--dry-run"])
    assert args.user_ids == ["u1", "u2"]
    assert args.dry_run is True
