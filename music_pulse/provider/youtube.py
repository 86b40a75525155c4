"""YouTube Data API v3 metrics provider."""

import logging
from typing import Any

import httpx

from music_pulse.config.settings import Settings, get_settings
from music_pulse.provider.base import MetricsProvider
from music_pulse.provider.circuit_breaker import CircuitBreaker, CircuitOpenError
from music_pulse.provider.http_client import (
    APIKeyRotator,
    HTTPClient,
    HTTPClientError,
    HTTPTimeoutError,
    RetryConfig,
)
from music_pulse.provider.schemas import parse_videos_response
from music_pulse.pulse.errors import (
    ProviderError,
    ProviderTimeoutError,
    QuotaExceededError,
    VideoNotFoundError,
)
from music_pulse.pulse.schemas import MetricCounts

logger = logging.getLogger(__name__)

# error.errors[].reason values that mean the key's quota is spent
QUOTA_REASONS = frozenset({
    "quotaExceeded",
    "dailyLimitExceeded",
    "rateLimitExceeded",
    "userRateLimitExceeded",
})


def _trips_breaker(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and not isinstance(exc, VideoNotFoundError)


def _error_reasons(response: httpx.Response) -> set[str]:
    try:
        body: Any = response.json()
    except ValueError:
        return set()
    if not isinstance(body, dict):
        return set()
    error = body.get("error") or {}
    errors = error.get("errors") if isinstance(error, dict) else None
    return {e.get("reason", "") for e in errors or [] if isinstance(e, dict)}


class YouTubeMetricsProvider(MetricsProvider):
    """
    Fetches view/like/comment counts from ``videos?part=statistics``.

    Usage:
        async with YouTubeMetricsProvider.from_settings() as provider:
            counts = await provider.fetch_metrics("dQw4w9WgXcQ")
    """

    name = "youtube"

    def __init__(
        self,
        api_keys: APIKeyRotator,
        base_url: str = "https://www.googleapis.com/youtube/v3",
        http_client: HTTPClient | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._keys = api_keys
        self._base_url = base_url.rstrip("/")
        self._http = http_client or HTTPClient()
        self._breaker = breaker or CircuitBreaker(trips_on=_trips_breaker, name="youtube")
        self._entered = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ) -> "YouTubeMetricsProvider":
        """Build a provider from application settings."""
        settings = settings or get_settings()
        rotator = APIKeyRotator.from_env_var(settings.youtube_api_keys)
        if rotator is None:
            raise ValueError("YOUTUBE_API_KEYS is not configured")
        http_client = HTTPClient(
            RetryConfig(
                max_retries=settings.max_http_retries,
                max_backoff_seconds=settings.max_backoff_seconds,
            ),
            timeout=settings.provider_timeout_seconds,
        )
        breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            trips_on=_trips_breaker,
            name="youtube",
        )
        return cls(rotator, settings.youtube_api_base_url, http_client, breaker)

    async def __aenter__(self) -> "YouTubeMetricsProvider":
        await self._http.__aenter__()
        self._entered = True
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._entered:
            await self._http.__aexit__(None, None, None)
            self._entered = False

    async def fetch_metrics(self, video_id: str) -> MetricCounts:
        try:
            return await self._breaker.call(self._fetch, video_id)
        except CircuitOpenError as e:
            raise QuotaExceededError(f"YouTube circuit open, skipping {video_id}") from e

    async def _fetch(self, video_id: str) -> MetricCounts:
        try:
            response = await self._http.get(
                f"{self._base_url}/videos",
                params={"part": "statistics", "id": video_id},
                api_key_rotator=self._keys,
                api_key_param="key",
            )
        except HTTPTimeoutError as e:
            raise ProviderTimeoutError(f"YouTube timed out for {video_id}") from e
        except HTTPClientError as e:
            raise ProviderError(f"YouTube error {e.status_code} for {video_id}") from e

        if response.status_code in (403, 429):
            reasons = _error_reasons(response)
            if response.status_code == 429 or reasons & QUOTA_REASONS:
                raise QuotaExceededError(f"YouTube quota exceeded ({', '.join(sorted(reasons)) or 429})")
            raise ProviderError(f"YouTube refused request for {video_id}: {sorted(reasons)}")
        if response.status_code == 404:
            raise VideoNotFoundError(f"Video {video_id} not found")
        if response.status_code >= 400:
            raise ProviderError(f"YouTube returned {response.status_code} for {video_id}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"YouTube returned non-JSON body for {video_id}") from e

        parsed = parse_videos_response(payload)
        for item in parsed.items:
            if item.id == video_id:
                return item.statistics.to_counts()

        # The API answers 200 with no items for deleted or private videos
        raise VideoNotFoundError(f"Video {video_id} not found or no longer public")
