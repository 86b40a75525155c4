"""
Chart-ready aggregates over the snapshot log.

Snapshots are grouped into hour buckets (UTC, minutes and seconds
discarded) and pivoted into one row per bucket with one field per track.
Within a bucket the last snapshot to arrive wins, so callers that need
deterministic output pre-sort with ``sort_snapshots``. Buckets come back
ascending regardless of input order.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Literal

from music_pulse.pulse.schemas import ChartLine, ChartSeriesPoint, MetricsSnapshot, TrackedTrack

ChartMetric = Literal["views", "likes", "comments"]

TRACK_COLORS: tuple[str, ...] = (
    "#ffffff", "#e5e5e5", "#d4d4d4", "#a3a3a3", "#737373",
    "#525252", "#404040", "#262626", "#171717", "#0a0a0a",
)

# Longer names are cut for the engagement comparison axis
MAX_LABEL_LENGTH = 18


def bucket_start(ts: datetime) -> datetime:
    """Truncate ``ts`` to the start of its UTC hour. Naive values are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def bucket_key(ts: datetime) -> str:
    """Format the bucket label, e.g. ``2026-03-01 14:00``."""
    return bucket_start(ts).strftime("%Y-%m-%d %H:00")


def sort_snapshots(snapshots: Iterable[MetricsSnapshot]) -> list[MetricsSnapshot]:
    """Order snapshots by capture time, then track id, for deterministic bucketing."""
    return sorted(snapshots, key=lambda s: (bucket_start(s.captured_at), s.captured_at, s.track_id))


class ChartAggregator:
    """Pivots the snapshot log into a wide, hour-bucketed series."""

    def __init__(self, palette: tuple[str, ...] = TRACK_COLORS) -> None:
        if not palette:
            raise ValueError("palette must contain at least one colour")
        self._palette = palette

    def build_series(
        self,
        snapshots: Iterable[MetricsSnapshot],
        track_names: Mapping[str, str],
        metric: ChartMetric = "views",
    ) -> list[ChartSeriesPoint]:
        """
        Build one point per hour bucket.

        Args:
            snapshots: Snapshots in arrival order; not sorted here.
            track_names: track_id -> display name. Snapshots for unknown
                tracks are skipped.
            metric: Which counter to plot.

        Returns:
            Points sorted by bucket start, each holding only the tracks
            that have a snapshot in that bucket.
        """
        if metric not in ("views", "likes", "comments"):
            raise ValueError(f"Unknown chart metric: {metric}")

        points: dict[datetime, ChartSeriesPoint] = {}
        for snapshot in snapshots:
            name = track_names.get(snapshot.track_id)
            if name is None:
                continue
            start = bucket_start(snapshot.captured_at)
            point = points.get(start)
            if point is None:
                point = ChartSeriesPoint(bucket=bucket_key(start), bucket_start=start)
                points[start] = point
            point.values[name] = getattr(snapshot, metric)

        return [points[start] for start in sorted(points)]

    def series_names(
        self,
        snapshots: Iterable[MetricsSnapshot],
        track_names: Mapping[str, str],
    ) -> list[str]:
        """Track names in order of first appearance in the log."""
        seen: dict[str, None] = {}
        for snapshot in snapshots:
            name = track_names.get(snapshot.track_id)
            if name is not None:
                seen.setdefault(name, None)
        return list(seen)

    def assign_colors(self, names: Iterable[str]) -> list[ChartLine]:
        """Positional palette assignment, wrapping when tracks outnumber colours."""
        return [
            ChartLine(name=name, color=self._palette[i % len(self._palette)])
            for i, name in enumerate(names)
        ]

    @staticmethod
    def engagement_rows(tracks: Iterable[TrackedTrack]) -> list[dict]:
        """Current views/likes/comments per track for the comparison bar chart."""
        rows = []
        for track in tracks:
            name = track.name
            if len(name) > MAX_LABEL_LENGTH:
                name = name[:MAX_LABEL_LENGTH] + "…"
            rows.append({
                "name": name,
                "views": track.current_views,
                "likes": track.current_likes,
                "comments": track.current_comments,
            })
        return rows
