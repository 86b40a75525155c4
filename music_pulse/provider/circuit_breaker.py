"""Circuit breaker for provider calls.

Once the provider has failed ``failure_threshold`` times in a row (quota
exhausted, outages), further calls in the same cycle are rejected locally
instead of burning more quota. State machine: CLOSED → OPEN → HALF_OPEN → CLOSED.

Usage:
    breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60.0)
    try:
        counts = await breaker.call(fetch, video_id)
    except CircuitOpenError:
        # Report as quota exceeded
"""

import enum
import logging
import time
from typing import Any, Callable, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(enum.Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""


class CircuitBreaker:
    """Wraps an async callable with circuit breaker protection.

    - CLOSED: Calls pass through. Consecutive tripping failures tracked.
    - OPEN: Calls rejected with CircuitOpenError until recovery_timeout.
    - HALF_OPEN: One probe allowed. Success → CLOSED, failure → OPEN.

    Args:
        failure_threshold: Consecutive failures before opening.
        recovery_timeout: Seconds before a recovery probe.
        trips_on: Predicate selecting which exceptions count as failures.
            Exceptions it rejects propagate without touching the state
            (a deleted video says nothing about provider health).
        name: Name used in log messages.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        trips_on: Callable[[BaseException], bool] | None = None,
        name: str = "provider",
    ) -> None:
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._trips_on = trips_on or (lambda exc: True)
        self._name = name
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def call(
        self,
        fn: Callable[..., Coroutine[Any, Any, T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute ``fn`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open and the recovery
                timeout has not elapsed.
        """
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time >= self._recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit breaker %s: OPEN → HALF_OPEN (recovery probe)", self._name)
            else:
                raise CircuitOpenError(f"Circuit breaker {self._name} is OPEN")

        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            if self._trips_on(exc):
                self._record_failure()
            elif self._state == CircuitState.HALF_OPEN:
                # Provider answered; the failure was about the request itself
                self._close()
            raise

        self._close()
        return result

    def _close(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            logger.info("Circuit breaker %s: HALF_OPEN → CLOSED (probe succeeded)", self._name)
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            logger.warning("Circuit breaker %s: HALF_OPEN → OPEN (probe failed)", self._name)
        elif self._consecutive_failures >= self._failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker %s: CLOSED → OPEN after %d failures",
                self._name,
                self._consecutive_failures,
            )
