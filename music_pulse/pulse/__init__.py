"""Music Pulse: engagement snapshots, growth trends and chart series for tracked videos."""

from music_pulse.pulse.chart import ChartAggregator, sort_snapshots
from music_pulse.pulse.config import PulseConfig
from music_pulse.pulse.growth import GrowthCalculator
from music_pulse.pulse.schemas import (
    ChartSeriesPoint,
    FailureReason,
    GrowthBasis,
    GrowthReport,
    MetricCounts,
    MetricsSnapshot,
    RefreshFailure,
    RefreshResult,
    TrackedTrack,
    TrackStatus,
)
from music_pulse.pulse.store import InMemorySnapshotStore, MetricsSnapshotStore

__all__ = [
    "ChartAggregator",
    "ChartSeriesPoint",
    "FailureReason",
    "GrowthBasis",
    "GrowthCalculator",
    "GrowthReport",
    "InMemorySnapshotStore",
    "MetricCounts",
    "MetricsSnapshot",
    "MetricsSnapshotStore",
    "PulseConfig",
    "RefreshFailure",
    "RefreshResult",
    "TrackStatus",
    "TrackedTrack",
    "sort_snapshots",
]
