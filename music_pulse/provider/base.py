"""Metrics provider interface."""

from abc import ABC, abstractmethod

from music_pulse.pulse.schemas import MetricCounts


class MetricsProvider(ABC):
    """
    Black-box source of current engagement counts, keyed by video id.

    Implementations raise the pulse provider errors on failure:
        - VideoNotFoundError: video deleted, private or unknown (permanent)
        - QuotaExceededError: quota or rate limit (transient)
        - ProviderTimeoutError: no answer in time (transient)
        - ProviderError: anything else
        - InvalidMetricsError: payload did not validate
    """

    name: str = "provider"

    @abstractmethod
    async def fetch_metrics(self, video_id: str) -> MetricCounts:
        """Return the current views/likes/comments for ``video_id``."""

    async def close(self) -> None:
        """Release network resources. Default is a no-op."""
