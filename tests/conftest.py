from datetime import UTC, datetime
from pathlib import Path

import pytest

from cardviews.adapters.clock import FrozenClock
from cardviews.adapters.memory_store import InMemoryUserStore
from cardviews.adapters.sqlite.migrator import SQLiteMigrator
from cardviews.adapters.sqlite.user_store import SQLiteUserStore


def views_at(*timestamps):
    """recentViews entries for the given timestamps."""
    return [{"timestamp": ts, "referrer": "direct", "userAgent": "test"} for ts in timestamps]


@pytest.fixture
def clock() -> FrozenClock:
    """Frozen at 2024-01-07 12:00 UTC."""
    return FrozenClock(datetime(2024, 1, 7, 12, 0, tzinfo=UTC))


@pytest.fixture
def sample_documents() -> dict[str, dict]:
    """
    A small users collection covering every migration outcome.
    """
    return {
        "alice": {
            "username": "alice",
            "analytics": {
                "totalViews": 10,
                "lastViewedAt": "2024-01-06T23:59:00Z",
                "recentViews": views_at(
                    datetime(2024, 1, 5, 10, 0, tzinfo=UTC),
                    datetime(2024, 1, 5, 10, 0, tzinfo=UTC),
                    datetime(2024, 1, 5, 10, 0, tzinfo=UTC),
                    datetime(2024, 1, 6, 23, 59, tzinfo=UTC),
                ),
            },
        },
        "bob": {
            "username": "bob",
            "analytics": {
                "totalViews": 2,
                "recentViews": views_at(datetime(2024, 1, 1, 9, 0, tzinfo=UTC)),
                "dailyViews": {"2024-01-01": 2},
            },
        },
        "carol": {"username": "carol"},
    }


@pytest.fixture
def memory_store(sample_documents) -> InMemoryUserStore:
    return InMemoryUserStore(sample_documents)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Temporary database with the users schema applied."""
    path = str(tmp_path / "cardviews.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def sqlite_store(db_path: str) -> SQLiteUserStore:
    return SQLiteUserStore(db_path)
