"""Caller-facing operations of the pulse engine."""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from music_pulse.provider.base import MetricsProvider
from music_pulse.provider.video_ids import extract_video_id
from music_pulse.pulse.chart import ChartAggregator, ChartMetric, sort_snapshots
from music_pulse.pulse.config import PulseConfig
from music_pulse.pulse.errors import TrackNotFoundError
from music_pulse.pulse.growth import GrowthCalculator
from music_pulse.pulse.refresh import RefreshCoordinator, utc_now
from music_pulse.pulse.schemas import (
    ChartLine,
    ChartSeriesPoint,
    DashboardSummary,
    GrowthReport,
    RefreshResult,
    TrackedTrack,
    TrackStatus,
)
from music_pulse.pulse.store import MetricsSnapshotStore

logger = logging.getLogger(__name__)


def _new_track_id() -> str:
    return f"trk_{uuid.uuid4().hex[:12]}"


class PulseService:
    """
    Facade over the store, refresh coordinator, growth calculator and
    chart aggregator for one owner's tracks.
    """

    def __init__(
        self,
        store: MetricsSnapshotStore,
        provider: MetricsProvider | None = None,
        config: PulseConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        coordinator: RefreshCoordinator | None = None,
    ) -> None:
        self._config = config or PulseConfig()
        self._store = store
        self._clock = clock
        self._calculator = GrowthCalculator(self._config)
        self._aggregator = ChartAggregator()
        if coordinator is None and provider is not None:
            coordinator = RefreshCoordinator(
                store,
                provider,
                calculator=self._calculator,
                config=self._config,
                clock=clock,
            )
        self._coordinator = coordinator

    @property
    def store(self) -> MetricsSnapshotStore:
        return self._store

    @property
    def coordinator(self) -> RefreshCoordinator:
        if self._coordinator is None:
            raise RuntimeError("No metrics provider configured; refresh is unavailable")
        return self._coordinator

    # ── Track registry ──────────────────────────────────────────

    async def register_track(
        self, name: str, source_url: str, fetch_initial: bool = True
    ) -> tuple[TrackedTrack, RefreshResult | None]:
        """
        Register a track by URL and optionally take its first snapshot.

        A failed initial fetch does not undo the registration; the track
        stays with zero counters and the failure is returned.

        Raises:
            InvalidTrackUrlError: If no video id can be resolved
            DuplicateTrackError: If the video is already tracked
        """
        name = name.strip()
        if not name:
            raise ValueError("Track name must not be empty")
        video_id = extract_video_id(source_url)

        track = TrackedTrack(
            track_id=_new_track_id(),
            name=name,
            source_url=source_url.strip(),
            video_id=video_id,
            recommendation=self._calculator.recommend(TrackStatus.STEADY),
            created_at=self._clock(),
        )
        track = await self._store.add_track(track)
        logger.info("Registered track %s (%s) for video %s", track.track_id, name, video_id)

        if not fetch_initial:
            return track, None

        result = await self.coordinator.refresh_track(track)
        refreshed = await self._store.get_track(track.track_id)
        return refreshed or track, result

    async def remove_track(self, track_id: str) -> None:
        """
        Remove a track and cascade-delete its snapshots.

        Raises:
            TrackNotFoundError: If the track does not exist
        """
        if not await self._store.remove_track(track_id):
            raise TrackNotFoundError(track_id)

    async def list_tracks(self) -> list[TrackedTrack]:
        return await self._store.list_tracks()

    # ── Refresh & growth ────────────────────────────────────────

    async def refresh_all(self) -> RefreshResult:
        """Refresh every tracked video. See RefreshCoordinator.refresh_all."""
        return await self.coordinator.refresh_all()

    async def compute_growth(self, track_id: str, as_of: datetime | None = None) -> GrowthReport:
        """
        Growth, status and recommendation for one track at ``as_of`` (default: now).

        Raises:
            TrackNotFoundError: If the track does not exist
        """
        if await self._store.get_track(track_id) is None:
            raise TrackNotFoundError(track_id)
        history = await self._store.list_snapshots(track_id)
        return self._calculator.calculate(history, as_of=as_of or self._clock())

    # ── Charts & summary ────────────────────────────────────────

    async def get_chart_series(self, metric: ChartMetric = "views") -> list[ChartSeriesPoint]:
        """Hour-bucketed wide series across all tracks, deterministic for a given log."""
        snapshots, names = await self._snapshots_and_names()
        return self._aggregator.build_series(sort_snapshots(snapshots), names, metric)

    async def get_chart_lines(self) -> list[ChartLine]:
        """Legend entries with positional palette colours."""
        snapshots, names = await self._snapshots_and_names()
        ordered = self._aggregator.series_names(sort_snapshots(snapshots), names)
        return self._aggregator.assign_colors(ordered)

    async def get_engagement_rows(self) -> list[dict]:
        return self._aggregator.engagement_rows(await self._store.list_tracks())

    async def dashboard_summary(self) -> DashboardSummary:
        """Tracks monitored, total views, best performer and promotion candidates."""
        tracks = await self._store.list_tracks()
        best = max(tracks, key=lambda t: t.current_views, default=None)
        refreshed = [t.last_refreshed_at for t in tracks if t.last_refreshed_at]
        return DashboardSummary(
            tracks_monitored=len(tracks),
            total_views=sum(t.current_views for t in tracks),
            best_performer=best.name if best else None,
            best_performer_status=best.status if best else None,
            worth_promoting=sum(
                1 for t in tracks if t.growth_7d > self._config.rising_threshold
            ),
            last_refreshed_at=max(refreshed) if refreshed else None,
        )

    async def _snapshots_and_names(self):
        tracks = await self._store.list_tracks()
        names = {t.track_id: t.name for t in tracks}
        snapshots = await self._store.list_snapshots()
        return snapshots, names
