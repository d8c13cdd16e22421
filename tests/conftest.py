"""Shared test fixtures.

The environment is set before the application is imported: settings are
cached on first use and ``src.main`` configures logging at import time.
"""

import os
import tempfile
from collections.abc import Iterator
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, Mock

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("CASSANDRA_ENABLED", "false")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="videolearn-logs-"))
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
from cassandra.cluster import Session
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.auth.security import create_access_token
from src.main import create_app


@pytest.fixture
def app() -> FastAPI:
    """Fresh application without database-backed services."""
    return create_app()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Test client running the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mock_session():
    """Mock Cassandra session with awaitable aexecute (cassandra-asyncio-driver)."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: Mock(name="prepared", cql=cql))
    session.aexecute = AsyncMock(return_value=Mock())
    return session


def make_token(user_id: str = "user-1", role: str = "student") -> str:
    return create_access_token(
        {"sub": user_id, "email": f"{user_id}@example.com", "role": role}
    )


def auth_headers(user_id: str = "user-1", role: str = "student") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


def progress_row(
    user_id: str = "user-1",
    video_id: int = 101,
    watch_time_seconds: int = 0,
    total_duration_seconds: int = 200,
    progress_percentage: float = 0.0,
    is_completed: bool = False,
    last_position_seconds: int = 0,
    bookmark_notes: str | None = None,
    first_watched_at: datetime | None = None,
    last_watched_at: datetime | None = None,
    completed_at: datetime | None = None,
    revision: int = 1,
) -> SimpleNamespace:
    """Stand-in for a ``watch_progress`` row as returned by the driver."""
    now = datetime(2024, 1, 1, tzinfo=UTC)
    return SimpleNamespace(
        user_id=user_id,
        video_id=video_id,
        watch_time_seconds=watch_time_seconds,
        total_duration_seconds=total_duration_seconds,
        progress_percentage=progress_percentage,
        is_completed=is_completed,
        last_position_seconds=last_position_seconds,
        bookmark_notes=bookmark_notes,
        first_watched_at=first_watched_at or now,
        last_watched_at=last_watched_at or now,
        completed_at=completed_at,
        revision=revision,
    )


def result_of(rows: list | None = None, was_applied: bool = True) -> Mock:
    """Driver result set: iterable, with ``one()`` and ``was_applied``."""
    rows = rows or []
    result = MagicMock()
    result.one.return_value = rows[0] if rows else None
    result.__iter__.side_effect = lambda: iter(rows)
    result.was_applied = was_applied
    return result


@pytest.fixture
def make_row():
    return progress_row


@pytest.fixture
def make_result():
    return result_of


@pytest.fixture
def headers_for():
    return auth_headers
