"""
Schemas for provider payloads.

YouTube returns statistics as decimal strings and omits counters the
uploader has hidden. Everything crossing the ingestion boundary is parsed
here; anything that does not fit is rejected rather than coerced to zero.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from music_pulse.pulse.errors import InvalidMetricsError
from music_pulse.pulse.schemas import MetricCounts


def _parse_count(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not a count")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"not an integer count: {value!r}")


class YouTubeStatisticsPayload(BaseModel):
    """The ``statistics`` block of a YouTube ``videos`` resource."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    view_count: int = Field(..., ge=0, alias="viewCount")
    like_count: int = Field(default=0, ge=0, alias="likeCount")
    comment_count: int = Field(default=0, ge=0, alias="commentCount")

    @field_validator("view_count", "like_count", "comment_count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return _parse_count(value)

    def to_counts(self) -> MetricCounts:
        return MetricCounts(
            views=self.view_count,
            likes=self.like_count,
            comments=self.comment_count,
        )


class YouTubeVideoItem(BaseModel):
    """One entry of the ``items`` array."""

    model_config = ConfigDict(extra="ignore")

    id: str
    statistics: YouTubeStatisticsPayload


class YouTubeVideosResponse(BaseModel):
    """Envelope of ``GET /videos``."""

    model_config = ConfigDict(extra="ignore")

    items: list[YouTubeVideoItem] = Field(default_factory=list)


def parse_videos_response(payload: Any) -> YouTubeVideosResponse:
    """
    Validate a raw ``videos`` response.

    Raises:
        InvalidMetricsError: If the payload does not match the schema
    """
    try:
        return YouTubeVideosResponse.model_validate(payload)
    except ValidationError as e:
        raise InvalidMetricsError(f"Malformed provider payload: {e.error_count()} error(s)") from e


def validate_counts(counts: MetricCounts) -> MetricCounts:
    """
    Check counts produced by any provider.

    Raises:
        InvalidMetricsError: If any count is negative or not an int
    """
    for name in ("views", "likes", "comments"):
        value = getattr(counts, name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidMetricsError(f"{name} is not an integer: {value!r}")
        if value < 0:
            raise InvalidMetricsError(f"{name} is negative: {value}")
    return counts
