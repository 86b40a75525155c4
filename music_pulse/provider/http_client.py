"""
HTTP infrastructure for metrics providers: retry with backoff and API key rotation.

Provides:
- APIKeyRotator: Round-robin rotation over comma-separated API keys
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async GET client with automatic retry and key rotation

Provider adapters translate the errors raised here into the pulse
failure taxonomy; this layer knows nothing about videos or quotas.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class APIKeyRotator:
    """
    Round-robin API key rotation.

    Spreading calls across several keys stretches the daily quota of
    providers that meter per key.

    Example:
        rotator = APIKeyRotator.from_env_var("key1,key2")
        key = await rotator.get_key()
    """

    keys: list[str]
    _current_index: int = field(default=0, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_env_var(cls, value: str | None) -> "APIKeyRotator | None":
        """Create a rotator from a comma-separated value, or None if empty."""
        if not value:
            return None

        keys = [k.strip() for k in value.split(",") if k.strip()]
        if not keys:
            return None

        return cls(keys=keys)

    async def get_key(self) -> str:
        """Return the next key in rotation."""
        async with self._lock:
            key = self.keys[self._current_index]
            self._current_index = (self._current_index + 1) % len(self.keys)
            return key

    @property
    def key_count(self) -> int:
        return len(self.keys)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 2
    max_backoff_seconds: float = 30.0
    base_delay: float = 0.5
    jitter_factor: float = 0.1
    retryable_statuses: frozenset[int] = frozenset({500, 502, 503, 504})

    def calculate_backoff(self, attempt: int) -> float:
        """Backoff in seconds for a 0-indexed retry attempt, with jitter."""
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        # Quota responses (403/429) are not retried: the quota will not
        # reset within a backoff window.
        return status_code in self.retryable_statuses


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class HTTPTimeoutError(HTTPClientError):
    """Raised when every attempt timed out or failed to connect."""


class HTTPClient:
    """
    Async HTTP client with retry logic and API key rotation.

    Example:
        async with HTTPClient(RetryConfig(max_retries=2), timeout=10.0) as client:
            response = await client.get(
                "https://www.googleapis.com/youtube/v3/videos",
                params={"part": "statistics", "id": video_id},
                api_key_rotator=rotator,
                api_key_param="key",
            )
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        api_key_rotator: APIKeyRotator | None = None,
        api_key_param: str | None = None,
    ) -> httpx.Response:
        """
        Perform a GET request with retries.

        Non-2xx responses that are not retryable are returned to the caller
        unchanged so provider adapters can read the error payload.

        Raises:
            HTTPTimeoutError: Timeouts/connection errors after retries exhausted
            HTTPClientError: Retryable status persisted after retries exhausted
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        last_status_code: int | None = None
        last_response_body: str | None = None
        attempts = self.retry_config.max_retries + 1

        for attempt in range(attempts):
            request_params = dict(params) if params else {}
            if api_key_rotator and api_key_param:
                request_params[api_key_param] = await api_key_rotator.get_key()

            try:
                response = await self._client.get(
                    url,
                    params=request_params or None,
                    headers=headers,
                )
            except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as e:
                if attempt < self.retry_config.max_retries:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        "Retryable error %s for %s, attempt %d/%d, backing off %.2fs",
                        type(e).__name__, url, attempt + 1, attempts, backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise HTTPTimeoutError(
                    f"Request to {url} failed after {attempt + 1} attempts: {type(e).__name__}",
                    status_code=last_status_code,
                ) from e

            if not self.retry_config.is_retryable_status(response.status_code):
                return response

            last_status_code = response.status_code
            last_response_body = response.text
            if attempt < self.retry_config.max_retries:
                backoff = self.retry_config.calculate_backoff(attempt)
                logger.warning(
                    "Retryable status %d from %s, attempt %d/%d, backing off %.2fs",
                    response.status_code, url, attempt + 1, attempts, backoff,
                )
                await asyncio.sleep(backoff)

        raise HTTPClientError(
            f"Request failed with status {last_status_code} after {attempts} attempts",
            status_code=last_status_code,
            response_body=last_response_body,
        )
