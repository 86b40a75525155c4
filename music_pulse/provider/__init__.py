"""Metrics providers: the external source of per-video engagement counts."""

from music_pulse.provider.base import MetricsProvider
from music_pulse.provider.video_ids import extract_video_id
from music_pulse.provider.youtube import YouTubeMetricsProvider

__all__ = [
    "MetricsProvider",
    "YouTubeMetricsProvider",
    "extract_video_id",
]
