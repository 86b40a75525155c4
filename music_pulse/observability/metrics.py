"""
Prometheus metrics for the Music Pulse engine.

Defines and exposes metrics for:
- Per-track refresh outcomes and failure reasons
- Provider fetch latency
- Data-quality rejections at the ingestion boundary
- Optimistic note commit outcomes

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from music_pulse.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for provider latency histograms (in seconds)
LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the pulse engine.

    Usage:
        metrics = get_metrics()
        metrics.record_track_refresh("succeeded")
        metrics.provider_latency.labels(provider="youtube").observe(0.2)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Refresh counters
        self.track_refreshes = Counter(
            "music_pulse_track_refreshes_total",
            "Per-track refresh attempts by outcome",
            ["outcome", "reason"],  # outcome: succeeded, failed
        )

        self.refresh_cycles = Counter(
            "music_pulse_refresh_cycles_total",
            "Refresh cycles by result",
            ["result"],  # complete, partial, rejected
        )

        self.refresh_duration = Histogram(
            "music_pulse_refresh_cycle_seconds",
            "Wall time of a full refresh cycle",
            buckets=LATENCY_BUCKETS,
        )

        self.refresh_in_flight = Gauge(
            "music_pulse_refresh_tracks_in_flight",
            "Tracks currently being refreshed",
        )

        # Provider latency
        self.provider_latency = Histogram(
            "music_pulse_provider_latency_seconds",
            "Time to fetch metrics from the external provider",
            ["provider"],
            buckets=LATENCY_BUCKETS,
        )

        # Ingestion boundary
        self.data_quality_errors = Counter(
            "music_pulse_data_quality_errors_total",
            "Snapshots rejected at ingestion",
            ["kind"],  # invalid_metrics, out_of_order
        )

        # Notes reconciliation
        self.note_commits = Counter(
            "music_pulse_note_commits_total",
            "Optimistic note commits by action and outcome",
            ["action", "outcome"],  # outcome: committed, reverted
        )

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info("Prometheus metrics server started on port %d", port)

    # Convenience methods

    def record_track_refresh(self, outcome: str, reason: str = "") -> None:
        """Record the outcome of one track's refresh."""
        self.track_refreshes.labels(outcome=outcome, reason=reason).inc()

    def record_refresh_cycle(self, result: str, duration: float | None = None) -> None:
        """
        Record a completed or rejected refresh cycle.

        Args:
            result: complete, partial, or rejected
            duration: Cycle wall time in seconds (omitted for rejections)
        """
        self.refresh_cycles.labels(result=result).inc()
        if duration is not None:
            self.refresh_duration.observe(duration)

    def record_data_quality_error(self, kind: str) -> None:
        """Record a snapshot rejected at the ingestion boundary."""
        self.data_quality_errors.labels(kind=kind).inc()

    def record_note_commit(self, action: str, outcome: str) -> None:
        """Record the resolution of an optimistic note action."""
        self.note_commits.labels(action=action, outcome=outcome).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
