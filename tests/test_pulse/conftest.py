"""Shared fixtures for pulse tests."""

from datetime import datetime, timedelta, timezone

import pytest

from music_pulse.pulse.config import PulseConfig
from music_pulse.pulse.store import InMemorySnapshotStore

T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TickingClock:
    """Returns ``start``, then advances by ``step`` on every call."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now += self.step
        return current


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def config() -> PulseConfig:
    return PulseConfig()


@pytest.fixture
def store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def sample_track_row() -> dict:
    """A dict mimicking an asyncpg Record for a pulse track."""
    return {
        "track_id": "trk_a",
        "name": "Midnight Drive",
        "source_url": "https://youtu.be/dQw4w9WgXcQ",
        "video_id": "dQw4w9WgXcQ",
        "current_views": 1200,
        "current_likes": 80,
        "current_comments": 12,
        "growth_7d": 20.0,
        "status": "rising",
        "recommendation": "Push it",
        "created_at": T0 - timedelta(days=8),
        "last_refreshed_at": T0,
    }


@pytest.fixture
def sample_snapshot_row() -> dict:
    """A dict mimicking an asyncpg Record for a snapshot."""
    return {
        "track_id": "trk_a",
        "captured_at": T0,
        "views": 1200,
        "likes": 80,
        "comments": 12,
    }
