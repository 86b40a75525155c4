"""
Bulk refresh of tracked videos.

One cycle fans out a provider call per track (bounded by a semaphore so
provider rate limits hold), then for each success appends a snapshot and
updates the track cache in a single store commit. Failures are collected
per track; the cycle itself only fails when it overlaps another cycle.
"""

import asyncio
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

import structlog

from music_pulse.observability.metrics import MetricsCollector, get_metrics
from music_pulse.provider.base import MetricsProvider
from music_pulse.provider.schemas import validate_counts
from music_pulse.pulse.config import PulseConfig
from music_pulse.pulse.errors import (
    InvariantViolationError,
    OutOfOrderSnapshotError,
    ProviderError,
    ProviderTimeoutError,
    RefreshInProgressError,
)
from music_pulse.pulse.growth import GrowthCalculator
from music_pulse.pulse.schemas import (
    FailureReason,
    MetricsSnapshot,
    RefreshFailure,
    RefreshResult,
    TrackedTrack,
)
from music_pulse.pulse.store import MetricsSnapshotStore

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshCoordinator:
    """
    Orchestrates refresh cycles over a store and a metrics provider.

    At most one cycle may own a given track at a time; a cycle that
    overlaps one still running is rejected with RefreshInProgressError.

    Usage:
        coordinator = RefreshCoordinator(store, provider)
        result = await coordinator.refresh_all()
        print(result.summary())
    """

    def __init__(
        self,
        store: MetricsSnapshotStore,
        provider: MetricsProvider,
        calculator: GrowthCalculator | None = None,
        config: PulseConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        metrics: MetricsCollector | None = None,
        fetch_timeout: float | None = None,
    ) -> None:
        self._config = config or PulseConfig()
        self._store = store
        self._provider = provider
        self._calculator = calculator or GrowthCalculator(self._config)
        self._clock = clock
        self._metrics = metrics or get_metrics()
        self._fetch_timeout = fetch_timeout
        self._semaphore = asyncio.Semaphore(self._config.refresh_concurrency)
        self._in_flight: set[str] = set()

    @property
    def in_progress(self) -> frozenset[str]:
        """Track ids owned by the running cycle(s)."""
        return frozenset(self._in_flight)

    async def refresh_all(self, tracks: Iterable[TrackedTrack] | None = None) -> RefreshResult:
        """
        Refresh every track (or the given ones) and report per-track outcomes.

        Waits for every track to settle before returning.

        Raises:
            RefreshInProgressError: If any track is already being refreshed
        """
        if tracks is None:
            tracks = await self._store.list_tracks()

        unique: dict[str, TrackedTrack] = {}
        for track in tracks:
            unique.setdefault(track.track_id, track)
        batch = list(unique.values())
        ids = list(unique)

        busy = self._in_flight.intersection(ids)
        if busy:
            self._metrics.record_refresh_cycle("rejected")
            logger.warning("Refresh rejected, cycle already in progress", busy=sorted(busy))
            raise RefreshInProgressError(sorted(busy))

        # Claimed before the first await
        self._in_flight.update(ids)
        self._metrics.refresh_in_flight.set(len(self._in_flight))
        started = time.perf_counter()
        try:
            outcomes = await asyncio.gather(*(self._refresh_one(t) for t in batch))
        finally:
            self._in_flight.difference_update(ids)
            self._metrics.refresh_in_flight.set(len(self._in_flight))

        result = RefreshResult()
        for track, failure in zip(batch, outcomes):
            if failure is None:
                result.succeeded.append(track.track_id)
            else:
                result.failed.append(failure)

        duration = time.perf_counter() - started
        self._metrics.record_refresh_cycle(
            "partial" if result.failed else "complete", duration
        )
        logger.info(
            "Refresh cycle finished",
            succeeded=len(result.succeeded),
            failed=len(result.failed),
            needs_review=result.needs_review,
            duration_ms=round(duration * 1000, 2),
        )
        return result

    async def refresh_track(self, track: TrackedTrack) -> RefreshResult:
        """Refresh a single track under the same rules as a full cycle."""
        return await self.refresh_all([track])

    async def _refresh_one(self, track: TrackedTrack) -> RefreshFailure | None:
        """Refresh one track. Returns None on success, never raises for data or provider errors."""
        log = logger.bind(track_id=track.track_id, video_id=track.video_id)
        try:
            counts = await self._fetch(track.video_id)
            validate_counts(counts)

            captured_at = self._clock()
            snapshot = MetricsSnapshot.from_counts(track.track_id, captured_at, counts)

            history = await self._store.list_snapshots(track.track_id)
            if history and captured_at <= history[-1].captured_at:
                raise OutOfOrderSnapshotError(
                    f"Snapshot at {captured_at.isoformat()} is not after "
                    f"{history[-1].captured_at.isoformat()}"
                )

            report = self._calculator.calculate([*history, snapshot], as_of=captured_at)
            await self._store.record_refresh(track.with_refresh(snapshot, report), snapshot)
        except ProviderError as e:
            log.warning(
                "Track refresh failed",
                reason=e.reason.value,
                retryable=e.retryable,
                error=str(e),
            )
            self._metrics.record_track_refresh("failed", e.reason.value)
            return RefreshFailure(track.track_id, e.reason, str(e))
        except InvariantViolationError as e:
            log.error("data_quality_error", kind=e.kind, error=str(e))
            self._metrics.record_data_quality_error(e.kind)
            self._metrics.record_track_refresh("failed", FailureReason.INVALID_DATA.value)
            return RefreshFailure(track.track_id, FailureReason.INVALID_DATA, str(e))
        except Exception as e:
            log.error("Unexpected error refreshing track", error=str(e), exc_info=True)
            self._metrics.record_track_refresh("failed", FailureReason.UNKNOWN.value)
            return RefreshFailure(track.track_id, FailureReason.UNKNOWN, str(e))

        log.debug(
            "Track refreshed",
            views=snapshot.views,
            growth_7d=report.growth_7d,
            basis=report.basis.value,
            status=report.status.value,
        )
        self._metrics.record_track_refresh("succeeded")
        return None

    async def _fetch(self, video_id: str):
        async with self._semaphore:
            started = time.perf_counter()
            try:
                if self._fetch_timeout is None:
                    return await self._provider.fetch_metrics(video_id)
                return await asyncio.wait_for(
                    self._provider.fetch_metrics(video_id), self._fetch_timeout
                )
            except asyncio.TimeoutError as e:
                raise ProviderTimeoutError(
                    f"No answer for {video_id} within {self._fetch_timeout}s"
                ) from e
            finally:
                self._metrics.provider_latency.labels(provider=self._provider.name).observe(
                    time.perf_counter() - started
                )
