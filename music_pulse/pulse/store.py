"""
Snapshot store interface and in-memory implementation.

The store owns two structures per owner: the append-only snapshot log and
the per-track cache of current counters. ``record_refresh`` is the only
path the refresh coordinator uses to write, and it must commit the new
snapshot and the updated cache together or not at all.
"""

import logging
from abc import ABC, abstractmethod
from types import MappingProxyType

from music_pulse.pulse.errors import DuplicateTrackError, OutOfOrderSnapshotError, TrackNotFoundError
from music_pulse.pulse.schemas import MetricsSnapshot, TrackedTrack

logger = logging.getLogger(__name__)


class MetricsSnapshotStore(ABC):
    """
    Persistence boundary for tracked tracks and their snapshot log.

    Implementations:
        - InMemorySnapshotStore: immutable structures swapped on write
        - PostgresSnapshotStore: asyncpg tables, one transaction per commit
    """

    @abstractmethod
    async def list_tracks(self) -> list[TrackedTrack]:
        """Return all tracks in registration order."""

    @abstractmethod
    async def get_track(self, track_id: str) -> TrackedTrack | None:
        """Return a track by id, or None."""

    @abstractmethod
    async def add_track(self, track: TrackedTrack) -> TrackedTrack:
        """
        Register a new track.

        Raises:
            DuplicateTrackError: If the video id is already tracked
        """

    @abstractmethod
    async def remove_track(self, track_id: str) -> bool:
        """Delete a track and all of its snapshots. Returns False if absent."""

    @abstractmethod
    async def append_snapshot(self, snapshot: MetricsSnapshot) -> None:
        """
        Append one snapshot to the log.

        Raises:
            TrackNotFoundError: If the track is not registered
            OutOfOrderSnapshotError: If the timestamp is not after the
                latest stored snapshot for the track
        """

    @abstractmethod
    async def list_snapshots(self, track_id: str | None = None) -> list[MetricsSnapshot]:
        """Return snapshots ordered by capture time (one track, or all)."""

    @abstractmethod
    async def update_track_cache(self, track: TrackedTrack) -> None:
        """Overwrite a track's cached counters, growth and status."""

    @abstractmethod
    async def record_refresh(self, track: TrackedTrack, snapshot: MetricsSnapshot) -> None:
        """
        Atomically append ``snapshot`` and store ``track`` as the new cache.

        On any error neither write is visible.
        """


class InMemorySnapshotStore(MetricsSnapshotStore):
    """
    Process-local store.

    Writes never mutate a structure another caller may hold: each commit
    builds new mappings and swaps them in with a single assignment, so
    readers observe either the old state or the new one.
    """

    def __init__(self) -> None:
        self._tracks: MappingProxyType[str, TrackedTrack] = MappingProxyType({})
        self._snapshots: MappingProxyType[str, tuple[MetricsSnapshot, ...]] = MappingProxyType({})

    async def list_tracks(self) -> list[TrackedTrack]:
        return list(self._tracks.values())

    async def get_track(self, track_id: str) -> TrackedTrack | None:
        return self._tracks.get(track_id)

    async def add_track(self, track: TrackedTrack) -> TrackedTrack:
        if any(t.video_id == track.video_id for t in self._tracks.values()):
            raise DuplicateTrackError(track.video_id)
        self._tracks = MappingProxyType({**self._tracks, track.track_id: track})
        self._snapshots = MappingProxyType({**self._snapshots, track.track_id: ()})
        return track

    async def remove_track(self, track_id: str) -> bool:
        if track_id not in self._tracks:
            return False
        self._tracks = MappingProxyType(
            {k: v for k, v in self._tracks.items() if k != track_id}
        )
        self._snapshots = MappingProxyType(
            {k: v for k, v in self._snapshots.items() if k != track_id}
        )
        logger.info("Removed track %s and its snapshots", track_id)
        return True

    async def append_snapshot(self, snapshot: MetricsSnapshot) -> None:
        self._snapshots = self._appended(snapshot)

    async def list_snapshots(self, track_id: str | None = None) -> list[MetricsSnapshot]:
        if track_id is not None:
            return list(self._snapshots.get(track_id, ()))
        merged = [s for log in self._snapshots.values() for s in log]
        return sorted(merged, key=lambda s: s.captured_at)

    async def update_track_cache(self, track: TrackedTrack) -> None:
        if track.track_id not in self._tracks:
            raise TrackNotFoundError(track.track_id)
        self._tracks = MappingProxyType({**self._tracks, track.track_id: track})

    async def record_refresh(self, track: TrackedTrack, snapshot: MetricsSnapshot) -> None:
        if track.track_id not in self._tracks:
            raise TrackNotFoundError(track.track_id)
        # Build both replacements first; nothing is visible until both exist
        snapshots = self._appended(snapshot)
        tracks = MappingProxyType({**self._tracks, track.track_id: track})
        self._snapshots, self._tracks = snapshots, tracks

    def _appended(self, snapshot: MetricsSnapshot) -> MappingProxyType:
        if snapshot.track_id not in self._tracks:
            raise TrackNotFoundError(snapshot.track_id)
        log = self._snapshots.get(snapshot.track_id, ())
        if log and snapshot.captured_at <= log[-1].captured_at:
            raise OutOfOrderSnapshotError(
                f"Snapshot at {snapshot.captured_at.isoformat()} is not after "
                f"{log[-1].captured_at.isoformat()} for track {snapshot.track_id}"
            )
        return MappingProxyType({**self._snapshots, snapshot.track_id: (*log, snapshot)})
