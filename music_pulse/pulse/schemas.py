"""Data models for the Music Pulse engine."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class TrackStatus(str, Enum):
    """Qualitative trend label derived from 7-day growth."""

    RISING = "rising"
    STEADY = "steady"
    DECLINING = "declining"


class GrowthBasis(str, Enum):
    """How the growth baseline was obtained."""

    MEASURED = "measured"  # baseline at or before the window boundary
    INSUFFICIENT_HISTORY = "insufficient_history"  # fell back to the oldest snapshot
    NEW = "new"  # baseline had zero views
    NO_DATA = "no_data"  # no snapshots at all


class FailureReason(str, Enum):
    """Why a single track's refresh failed."""

    NOT_FOUND = "not_found"
    QUOTA_EXCEEDED = "quota_exceeded"
    TIMEOUT = "timeout"
    INVALID_DATA = "invalid_data"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """Transient failures may succeed on the next cycle."""
        return self in (FailureReason.QUOTA_EXCEEDED, FailureReason.TIMEOUT)


@dataclass(frozen=True)
class MetricCounts:
    """Views, likes and comments at one instant."""

    views: int
    likes: int
    comments: int


ZERO_COUNTS = MetricCounts(views=0, likes=0, comments=0)


@dataclass(frozen=True)
class MetricsSnapshot:
    """One immutable measurement of a track's metrics.

    Identity is ``(track_id, captured_at)``. Snapshots are appended by the
    refresh coordinator and never mutated.
    """

    track_id: str
    captured_at: datetime
    views: int
    likes: int
    comments: int

    @property
    def counts(self) -> MetricCounts:
        return MetricCounts(views=self.views, likes=self.likes, comments=self.comments)

    @classmethod
    def from_counts(
        cls, track_id: str, captured_at: datetime, counts: MetricCounts
    ) -> "MetricsSnapshot":
        return cls(
            track_id=track_id,
            captured_at=captured_at,
            views=counts.views,
            likes=counts.likes,
            comments=counts.comments,
        )


@dataclass(frozen=True)
class GrowthReport:
    """Derived trend indicators for one track.

    ``growth_7d`` is None when the baseline is zero (``NEW``) or when there
    is no history (``NO_DATA``); it is never ``inf`` or ``nan``.
    """

    growth_7d: float | None
    basis: GrowthBasis
    status: TrackStatus
    recommendation: str
    baseline_at: datetime | None = None
    latest_at: datetime | None = None

    @property
    def insufficient_history(self) -> bool:
        return self.basis is GrowthBasis.INSUFFICIENT_HISTORY

    @property
    def effective_growth(self) -> float:
        """Growth used for classification and caching (undefined counts as 0)."""
        return self.growth_7d if self.growth_7d is not None else 0.0

    @property
    def display_growth(self) -> float:
        return round(self.effective_growth, 1)


@dataclass(frozen=True)
class TrackedTrack:
    """A registered track whose source video is polled for engagement.

    The ``current_*`` counters always mirror the most recent snapshot;
    with no snapshot they are zero and growth is 0.
    """

    track_id: str
    name: str
    source_url: str
    video_id: str
    current_views: int = 0
    current_likes: int = 0
    current_comments: int = 0
    growth_7d: float = 0.0
    status: TrackStatus = TrackStatus.STEADY
    recommendation: str = ""
    created_at: datetime | None = None
    last_refreshed_at: datetime | None = None

    @property
    def counts(self) -> MetricCounts:
        return MetricCounts(
            views=self.current_views,
            likes=self.current_likes,
            comments=self.current_comments,
        )

    def with_refresh(self, snapshot: MetricsSnapshot, report: GrowthReport) -> "TrackedTrack":
        """Return a copy whose cache reflects ``snapshot`` and ``report``."""
        return replace(
            self,
            current_views=snapshot.views,
            current_likes=snapshot.likes,
            current_comments=snapshot.comments,
            growth_7d=report.display_growth,
            status=report.status,
            recommendation=report.recommendation,
            last_refreshed_at=snapshot.captured_at,
        )


@dataclass(frozen=True)
class RefreshFailure:
    """A track whose refresh did not commit."""

    track_id: str
    reason: FailureReason
    message: str = ""

    @property
    def retryable(self) -> bool:
        return self.reason.retryable


@dataclass
class RefreshResult:
    """Outcome of one refresh cycle; partial success is a normal result."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[RefreshFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed) and bool(self.succeeded)

    @property
    def retryable(self) -> list[str]:
        return [f.track_id for f in self.failed if f.retryable]

    @property
    def needs_review(self) -> list[str]:
        """Tracks whose source video is gone and need user attention."""
        return [f.track_id for f in self.failed if f.reason is FailureReason.NOT_FOUND]

    def summary(self) -> str:
        parts = [f"{len(self.succeeded)} succeeded", f"{len(self.failed)} failed"]
        if self.failed:
            reasons = ", ".join(f"{f.track_id}: {f.reason.value}" for f in self.failed)
            parts.append(f"({reasons})")
        return " ".join(parts)

    def to_dict(self) -> dict:
        return {
            "succeeded": list(self.succeeded),
            "failed": [
                {"track_id": f.track_id, "reason": f.reason.value, "message": f.message}
                for f in self.failed
            ],
        }


@dataclass
class ChartSeriesPoint:
    """One hour bucket of the wide-format chart series.

    ``values`` is sparse: a track with no snapshot in the bucket has no key.
    """

    bucket: str
    bucket_start: datetime
    values: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"date": self.bucket, **self.values}


@dataclass(frozen=True)
class ChartLine:
    """Legend entry: a track's series name and its palette colour."""

    name: str
    color: str


@dataclass(frozen=True)
class DashboardSummary:
    """Headline numbers for the pulse dashboard."""

    tracks_monitored: int
    total_views: int
    best_performer: str | None
    best_performer_status: TrackStatus | None
    worth_promoting: int
    last_refreshed_at: datetime | None
