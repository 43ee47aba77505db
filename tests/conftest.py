"""Shared test fixtures."""

import os
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta


# Settings are cached on first use; configure before the app is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_REQUESTS", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from campus_feed.comments.models import Comment  # noqa: E402


BASE_TIME = datetime(2025, 10, 3, 12, 0, tzinfo=UTC)


def at(minutes: int) -> datetime:
    """Timestamp ``minutes`` after the base time."""
    return BASE_TIME + timedelta(minutes=minutes)


def _make_comment(
    comment_id: str,
    minutes: int,
    parent_id: str | None = None,
    author_name: str | None = None,
) -> Comment:
    """Comment created ``minutes`` after the base time."""
    return Comment(
        id=comment_id,
        created_at=at(minutes),
        parent_id=parent_id,
        author_name=author_name or f"Author {comment_id}",
        content=f"Comment {comment_id}",
    )


@pytest.fixture
def make_comment():
    """Factory for comments created N minutes after the base time."""
    return _make_comment


@pytest.fixture
def ts():
    """Factory for timestamps N minutes after the base time."""
    return at


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Test client with the application lifespan running."""
    from campus_feed.main import app

    with TestClient(app) as test_client:
        yield test_client
