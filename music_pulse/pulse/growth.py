"""Seven-day growth and promotion status for a track.

Growth compares the latest view count against a baseline snapshot:

- MEASURED: the latest snapshot at or before ``as_of - window``
- INSUFFICIENT_HISTORY: no snapshot reaches back that far, so the oldest
  available one is used and the report is flagged
- NEW: the baseline had zero views; growth is undefined rather than infinite
- NO_DATA: nothing has been captured yet

Classification and recommendation text are fixed functions of the growth
value, so the calculator is pure for a given history and ``as_of``.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from music_pulse.pulse.config import PulseConfig
from music_pulse.pulse.schemas import GrowthBasis, GrowthReport, MetricsSnapshot, TrackStatus

logger = logging.getLogger(__name__)

RECOMMENDATIONS: dict[TrackStatus, str] = {
    TrackStatus.RISING: "Momentum is building. Push this track now with paid promotion and playlist pitching.",
    TrackStatus.STEADY: "Holding steady. Keep organic posting going and test a short-form clip.",
    TrackStatus.DECLINING: "Interest is fading. Pause spend and refresh the creative before promoting again.",
}


class GrowthCalculator:
    """Stateless growth/status derivation over a snapshot history."""

    def __init__(self, config: PulseConfig | None = None) -> None:
        self._config = config or PulseConfig()

    @property
    def window(self) -> timedelta:
        return timedelta(days=self._config.growth_window_days)

    def calculate(
        self,
        history: Iterable[MetricsSnapshot],
        as_of: datetime | None = None,
    ) -> GrowthReport:
        """Compute growth, status and recommendation for one track.

        Args:
            history: Snapshots for a single track, in any order.
            as_of: Reference instant; snapshots after it are ignored.
                Defaults to the latest snapshot's timestamp, which keeps
                the result a function of the history alone.

        Returns:
            GrowthReport; ``growth_7d`` is None for NEW and NO_DATA.
        """
        ordered = sorted(history, key=lambda s: s.captured_at)
        if as_of is not None:
            ordered = [s for s in ordered if s.captured_at <= as_of]
        if not ordered:
            return self._report(None, GrowthBasis.NO_DATA)

        latest = ordered[-1]
        reference = as_of or latest.captured_at
        boundary = reference - self.window

        # The latest snapshot never serves as its own baseline
        baseline = None
        for snapshot in ordered[:-1]:
            if snapshot.captured_at > boundary:
                break
            baseline = snapshot

        basis = GrowthBasis.MEASURED
        if baseline is None:
            baseline = ordered[0]
            basis = GrowthBasis.INSUFFICIENT_HISTORY

        if baseline.views == 0:
            return self._report(None, GrowthBasis.NEW, baseline, latest)

        growth = (latest.views - baseline.views) / baseline.views * 100
        return self._report(growth, basis, baseline, latest)

    def classify(self, growth: float | None) -> TrackStatus:
        """Map a growth percentage onto a status. Undefined growth counts as 0."""
        value = growth if growth is not None else 0.0
        if value > self._config.rising_threshold:
            return TrackStatus.RISING
        if value < self._config.declining_threshold:
            return TrackStatus.DECLINING
        return TrackStatus.STEADY

    @staticmethod
    def recommend(status: TrackStatus) -> str:
        return RECOMMENDATIONS[status]

    def _report(
        self,
        growth: float | None,
        basis: GrowthBasis,
        baseline: MetricsSnapshot | None = None,
        latest: MetricsSnapshot | None = None,
    ) -> GrowthReport:
        status = self.classify(growth)
        if basis is GrowthBasis.INSUFFICIENT_HISTORY:
            logger.debug(
                "Growth for %s computed against oldest snapshot (insufficient history)",
                latest.track_id if latest else "?",
            )
        return GrowthReport(
            growth_7d=growth,
            basis=basis,
            status=status,
            recommendation=self.recommend(status),
            baseline_at=baseline.captured_at if baseline else None,
            latest_at=latest.captured_at if latest else None,
        )
