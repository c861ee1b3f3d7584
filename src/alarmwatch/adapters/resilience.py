"""Rate limiting, circuit breaking and retry helpers for the enrichment service.

These complement :mod:`alarmwatch.adapters.http_resilience`: that module makes a
single HTTP client polite and retrying at the transport level, this one guards
an *operation* (a model completion) whose failures we want to count, back off
from, and eventually stop attempting for a while.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections import deque
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from alarmwatch.config.resilience import (
    BackoffPolicy,
    CircuitBreakerPolicy,
    SlidingWindowLimit,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)

type Clock = Callable[[], float]
type Sleeper = Callable[[float], Awaitable[None]]

_NETWORK_ERRORS: tuple[type[BaseException], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionResetError,
    TimeoutError,
)


class SlidingWindowRateLimiter:
    """Allow at most ``max_calls`` acquisitions in any trailing window.

    When the window is full, :meth:`acquire` sleeps until the oldest timestamp
    leaves the window (plus a small buffer) and then records the new call.
    """

    def __init__(
        self,
        limit: SlidingWindowLimit | None = None,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.limit = limit or SlidingWindowLimit()
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()

    @property
    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        now = self._clock()
        self._prune(now)
        if len(self._timestamps) >= self.limit.max_calls:
            oldest = self._timestamps[0]
            wait = self.limit.window_seconds - (now - oldest) + self.limit.buffer_seconds
            if wait > 0:
                log.warning("Rate limit reached; waiting %.2fs before next request", wait)
                await self._sleep(wait)
        self._timestamps.append(self._clock())

    def reset(self) -> None:
        """Forget all recorded calls (the server's own accounting disagreed with ours)."""

        self._timestamps.clear()

    def _prune(self, now: float) -> None:
        window = self.limit.window_seconds
        while self._timestamps and now - self._timestamps[0] >= window:
            self._timestamps.popleft()


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Fail fast once an operation has failed ``failure_threshold`` times.

    ``CLOSED`` -> ``OPEN`` when the failure count reaches the threshold.
    ``OPEN`` -> ``HALF_OPEN`` once ``reset_timeout_seconds`` have passed since the
    last failure; the next call is a probe. A successful probe closes the circuit
    and zeroes the failure count, a failed probe reopens it and restarts the timer.
    """

    def __init__(
        self,
        policy: CircuitBreakerPolicy | None = None,
        *,
        name: str = "circuit",
        clock: Clock = time.monotonic,
    ) -> None:
        self.policy = policy or CircuitBreakerPolicy()
        self.name = name
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_at: float | None = None

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    async def call[T](
        self,
        operation: Callable[[], Awaitable[T]],
        fallback: Callable[[], T],
    ) -> T:
        if self._state is CircuitState.OPEN:
            if not self._cooldown_elapsed():
                log.warning("Circuit %s open, failing fast", self.name)
                return fallback()
            self._state = CircuitState.HALF_OPEN
            log.info("Circuit %s half-open, probing service availability", self.name)

        try:
            result = await operation()
        except Exception:
            log.warning("Circuit %s recorded a failure", self.name, exc_info=True)
            self._record_failure()
            return fallback()

        if self._state is CircuitState.HALF_OPEN:
            self._close()
        return result

    def _cooldown_elapsed(self) -> bool:
        if self._last_failure_at is None:
            return True
        return self._clock() - self._last_failure_at >= self.policy.reset_timeout_seconds

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_at = self._clock()
        if self._state is CircuitState.HALF_OPEN:
            self._open()
        elif (
            self._state is CircuitState.CLOSED
            and self._failure_count >= self.policy.failure_threshold
        ):
            self._open()

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        log.warning("Circuit %s opened after %d failures", self.name, self._failure_count)

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        log.info("Circuit %s closed, service recovered", self.name)


def status_code_of(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def is_retryable(exc: BaseException, policy: BackoffPolicy) -> bool:
    """Rate limits, server errors and dropped/timed-out connections are retryable."""

    status = status_code_of(exc)
    if status is not None:
        return policy.is_retryable_status(status)
    return isinstance(exc, _NETWORK_ERRORS)


def backoff_delay(
    attempt: int,
    policy: BackoffPolicy,
    *,
    jitter: Callable[[], float] = random.random,
) -> float:
    """Delay before retry number ``attempt`` (1-based), jittered and capped."""

    base = policy.initial_backoff_seconds * (2 ** (attempt - 1))
    spread = jitter() * policy.max_jitter_ratio
    return min(base * (1 + spread), policy.max_backoff_seconds)
