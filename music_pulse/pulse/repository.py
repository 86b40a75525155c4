"""PostgreSQL-backed snapshot store for tracked tracks."""

import logging

import asyncpg

from music_pulse.pulse.errors import DuplicateTrackError, OutOfOrderSnapshotError, TrackNotFoundError
from music_pulse.pulse.schemas import MetricsSnapshot, TrackedTrack, TrackStatus
from music_pulse.pulse.store import MetricsSnapshotStore
from music_pulse.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS pulse_tracks (
    track_id          TEXT PRIMARY KEY,
    owner_id          TEXT NOT NULL,
    name              TEXT NOT NULL,
    source_url        TEXT NOT NULL,
    video_id          TEXT NOT NULL,
    current_views     BIGINT NOT NULL DEFAULT 0 CHECK (current_views >= 0),
    current_likes     BIGINT NOT NULL DEFAULT 0 CHECK (current_likes >= 0),
    current_comments  BIGINT NOT NULL DEFAULT 0 CHECK (current_comments >= 0),
    growth_7d         DOUBLE PRECISION NOT NULL DEFAULT 0,
    status            TEXT NOT NULL DEFAULT 'steady',
    recommendation    TEXT NOT NULL DEFAULT '',
    created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_refreshed_at TIMESTAMPTZ,
    UNIQUE (owner_id, video_id)
);

CREATE TABLE IF NOT EXISTS pulse_snapshots (
    track_id    TEXT NOT NULL REFERENCES pulse_tracks(track_id) ON DELETE CASCADE,
    captured_at TIMESTAMPTZ NOT NULL,
    views       BIGINT NOT NULL CHECK (views >= 0),
    likes       BIGINT NOT NULL CHECK (likes >= 0),
    comments    BIGINT NOT NULL CHECK (comments >= 0),
    PRIMARY KEY (track_id, captured_at)
);

CREATE INDEX IF NOT EXISTS idx_pulse_tracks_owner
    ON pulse_tracks(owner_id, created_at);
"""

# Inserts only when no snapshot at or after this instant exists, so the
# log stays strictly ordered even if two writers race.
_APPEND_SNAPSHOT_SQL = """
INSERT INTO pulse_snapshots (track_id, captured_at, views, likes, comments)
SELECT $1, $2, $3, $4, $5
WHERE NOT EXISTS (
    SELECT 1 FROM pulse_snapshots
    WHERE track_id = $1 AND captured_at >= $2
)
RETURNING track_id
"""

_UPDATE_CACHE_SQL = """
UPDATE pulse_tracks SET
    current_views = $3,
    current_likes = $4,
    current_comments = $5,
    growth_7d = $6,
    status = $7,
    recommendation = $8,
    last_refreshed_at = $9
WHERE track_id = $1 AND owner_id = $2
"""


def _record_to_track(record) -> TrackedTrack:
    """Convert an asyncpg Record to a TrackedTrack."""
    return TrackedTrack(
        track_id=record["track_id"],
        name=record["name"],
        source_url=record["source_url"],
        video_id=record["video_id"],
        current_views=record["current_views"],
        current_likes=record["current_likes"],
        current_comments=record["current_comments"],
        growth_7d=record["growth_7d"],
        status=TrackStatus(record["status"]),
        recommendation=record["recommendation"],
        created_at=record["created_at"],
        last_refreshed_at=record["last_refreshed_at"],
    )


def _record_to_snapshot(record) -> MetricsSnapshot:
    """Convert an asyncpg Record to a MetricsSnapshot."""
    return MetricsSnapshot(
        track_id=record["track_id"],
        captured_at=record["captured_at"],
        views=record["views"],
        likes=record["likes"],
        comments=record["comments"],
    )


def _cache_params(owner_id: str, track: TrackedTrack) -> tuple:
    return (
        track.track_id,
        owner_id,
        track.current_views,
        track.current_likes,
        track.current_comments,
        track.growth_7d,
        track.status.value,
        track.recommendation,
        track.last_refreshed_at,
    )


class PostgresSnapshotStore(MetricsSnapshotStore):
    """Tracks and snapshots for a single owner, stored in PostgreSQL."""

    def __init__(self, database: Database, owner_id: str) -> None:
        self._db = database
        self._owner_id = owner_id

    async def create_tables(self) -> None:
        """Create the pulse tables and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Pulse tables ensured")

    async def list_tracks(self) -> list[TrackedTrack]:
        rows = await self._db.fetch(
            "SELECT * FROM pulse_tracks WHERE owner_id = $1 ORDER BY created_at, track_id",
            self._owner_id,
        )
        return [_record_to_track(r) for r in rows]

    async def get_track(self, track_id: str) -> TrackedTrack | None:
        row = await self._db.fetchrow(
            "SELECT * FROM pulse_tracks WHERE track_id = $1 AND owner_id = $2",
            track_id, self._owner_id,
        )
        return _record_to_track(row) if row else None

    async def add_track(self, track: TrackedTrack) -> TrackedTrack:
        try:
            row = await self._db.fetchrow(
                """
                INSERT INTO pulse_tracks (track_id, owner_id, name, source_url, video_id)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                track.track_id, self._owner_id, track.name, track.source_url, track.video_id,
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateTrackError(track.video_id) from e
        return _record_to_track(row)

    async def remove_track(self, track_id: str) -> bool:
        result = await self._db.execute(
            "DELETE FROM pulse_tracks WHERE track_id = $1 AND owner_id = $2",
            track_id, self._owner_id,
        )
        removed = result.endswith(" 1")
        if removed:
            logger.info("Removed track %s and its snapshots", track_id)
        return removed

    async def append_snapshot(self, snapshot: MetricsSnapshot) -> None:
        async with self._db.transaction() as conn:
            await self._append(conn, snapshot)

    async def list_snapshots(self, track_id: str | None = None) -> list[MetricsSnapshot]:
        if track_id is not None:
            rows = await self._db.fetch(
                """
                SELECT s.* FROM pulse_snapshots s
                JOIN pulse_tracks t ON t.track_id = s.track_id
                WHERE s.track_id = $1 AND t.owner_id = $2
                ORDER BY s.captured_at
                """,
                track_id, self._owner_id,
            )
        else:
            rows = await self._db.fetch(
                """
                SELECT s.* FROM pulse_snapshots s
                JOIN pulse_tracks t ON t.track_id = s.track_id
                WHERE t.owner_id = $1
                ORDER BY s.captured_at, t.created_at, s.track_id
                """,
                self._owner_id,
            )
        return [_record_to_snapshot(r) for r in rows]

    async def update_track_cache(self, track: TrackedTrack) -> None:
        result = await self._db.execute(_UPDATE_CACHE_SQL, *_cache_params(self._owner_id, track))
        if not result.endswith(" 1"):
            raise TrackNotFoundError(track.track_id)

    async def record_refresh(self, track: TrackedTrack, snapshot: MetricsSnapshot) -> None:
        async with self._db.transaction() as conn:
            await self._append(conn, snapshot)
            result = await conn.execute(_UPDATE_CACHE_SQL, *_cache_params(self._owner_id, track))
            if not result.endswith(" 1"):
                # Raising inside the transaction rolls back the snapshot insert
                raise TrackNotFoundError(track.track_id)

    async def _append(self, conn, snapshot: MetricsSnapshot) -> None:
        owned = await conn.fetchval(
            "SELECT 1 FROM pulse_tracks WHERE track_id = $1 AND owner_id = $2 FOR UPDATE",
            snapshot.track_id, self._owner_id,
        )
        if not owned:
            raise TrackNotFoundError(snapshot.track_id)
        inserted = await conn.fetchval(
            _APPEND_SNAPSHOT_SQL,
            snapshot.track_id,
            snapshot.captured_at,
            snapshot.views,
            snapshot.likes,
            snapshot.comments,
        )
        if inserted is None:
            raise OutOfOrderSnapshotError(
                f"Snapshot at {snapshot.captured_at.isoformat()} is not after the "
                f"latest stored snapshot for track {snapshot.track_id}"
            )
