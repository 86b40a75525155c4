"""Exception hierarchy for the pulse engine.

Provider failures carry a ``FailureReason`` so the refresh coordinator can
report them per track without inspecting exception types.
"""

from music_pulse.pulse.schemas import FailureReason


class PulseError(Exception):
    """Base exception for pulse engine errors."""


class TrackNotFoundError(PulseError):
    """Raised when a track id is not registered."""

    def __init__(self, track_id: str):
        super().__init__(f"Track {track_id} not found")
        self.track_id = track_id


class DuplicateTrackError(PulseError):
    """Raised when a video is already tracked."""

    def __init__(self, video_id: str):
        super().__init__(f"Video {video_id} is already tracked")
        self.video_id = video_id


class InvalidTrackUrlError(PulseError, ValueError):
    """Raised when no video id can be resolved from a track URL."""


class RefreshInProgressError(PulseError):
    """Raised when a refresh cycle overlaps one that is still running."""

    def __init__(self, track_ids: list[str]):
        super().__init__(
            f"Refresh already in progress for {len(track_ids)} track(s)"
        )
        self.track_ids = track_ids


# ── External provider ───────────────────────────────────────


class ProviderError(PulseError):
    """A metrics provider call failed."""

    reason: FailureReason = FailureReason.UNKNOWN

    @property
    def retryable(self) -> bool:
        return self.reason.retryable


class ProviderTimeoutError(ProviderError):
    """Provider did not answer in time (transient)."""

    reason = FailureReason.TIMEOUT


class QuotaExceededError(ProviderError):
    """Provider quota or rate limit hit (transient)."""

    reason = FailureReason.QUOTA_EXCEEDED


class VideoNotFoundError(ProviderError):
    """Source video is private, deleted or never existed (permanent)."""

    reason = FailureReason.NOT_FOUND


# ── Invariant violations ────────────────────────────────────


class InvariantViolationError(PulseError):
    """Data rejected at ingestion; prior state is preserved."""

    reason = FailureReason.INVALID_DATA
    kind = "invariant_violation"


class InvalidMetricsError(InvariantViolationError):
    """Provider payload was malformed or carried negative counts."""

    kind = "invalid_metrics"


class OutOfOrderSnapshotError(InvariantViolationError):
    """A new snapshot is not strictly later than the latest stored one."""

    kind = "out_of_order"
