from __future__ import annotations

import asyncio

import httpx
import pytest

from alarmwatch.adapters.resilience import (
    CircuitBreaker,
    CircuitState,
    SlidingWindowRateLimiter,
    backoff_delay,
    is_retryable,
)
from alarmwatch.config.resilience import BackoffPolicy, CircuitBreakerPolicy, SlidingWindowLimit
from tests.helpers.alarms import ManualClock, RecordingSleeper


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.test/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


# rate limiter


def test_limiter_waits_for_oldest_call_to_leave_window() -> None:
    clock = ManualClock()
    sleeper = RecordingSleeper(clock)
    limiter = SlidingWindowRateLimiter(
        SlidingWindowLimit(max_calls=2, window_seconds=60.0, buffer_seconds=0.1),
        clock=clock,
        sleep=sleeper,
    )

    async def run() -> None:
        await limiter.acquire()
        clock.advance(10)
        await limiter.acquire()
        clock.advance(5)
        await limiter.acquire()

    asyncio.run(run())

    assert sleeper.delays == [pytest.approx(45.1)]
    assert limiter.in_window == 2


def test_limiter_never_exceeds_limit_in_any_window() -> None:
    clock = ManualClock()
    sleeper = RecordingSleeper(clock)
    limiter = SlidingWindowRateLimiter(
        SlidingWindowLimit(max_calls=3, window_seconds=60.0),
        clock=clock,
        sleep=sleeper,
    )
    stamps: list[float] = []

    async def run() -> None:
        for _ in range(10):
            await limiter.acquire()
            stamps.append(clock())
            clock.advance(1)

    asyncio.run(run())

    for index, stamp in enumerate(stamps):
        in_window = [other for other in stamps[index:] if other - stamp < 60.0]
        assert len(in_window) <= 3


def test_limiter_reset_clears_window() -> None:
    clock = ManualClock()
    sleeper = RecordingSleeper(clock)
    limiter = SlidingWindowRateLimiter(
        SlidingWindowLimit(max_calls=1), clock=clock, sleep=sleeper
    )

    async def run() -> None:
        await limiter.acquire()
        limiter.reset()
        await limiter.acquire()

    asyncio.run(run())

    assert sleeper.delays == []


# circuit breaker


def test_breaker_opens_at_threshold_and_fails_fast() -> None:
    clock = ManualClock()
    breaker = CircuitBreaker(CircuitBreakerPolicy(failure_threshold=2), clock=clock)
    attempts: list[int] = []

    async def operation() -> str:
        attempts.append(1)
        raise RuntimeError("down")

    async def run() -> list[str]:
        return [await breaker.call(operation, fallback=lambda: "fallback") for _ in range(3)]

    results = asyncio.run(run())

    assert results == ["fallback"] * 3
    assert len(attempts) == 2
    assert breaker.state is CircuitState.OPEN
    assert breaker.failure_count == 2


def test_breaker_half_open_probe_success_closes() -> None:
    clock = ManualClock()
    policy = CircuitBreakerPolicy(failure_threshold=1, reset_timeout_seconds=60.0)
    breaker = CircuitBreaker(policy, clock=clock)

    async def fail() -> str:
        raise RuntimeError("down")

    async def succeed() -> str:
        return "ok"

    async def run() -> tuple[str, str, str]:
        first = await breaker.call(fail, fallback=lambda: "fallback")
        clock.advance(30)
        during_cooldown = await breaker.call(succeed, fallback=lambda: "fallback")
        clock.advance(31)
        probe = await breaker.call(succeed, fallback=lambda: "fallback")
        return first, during_cooldown, probe

    assert asyncio.run(run()) == ("fallback", "fallback", "ok")
    assert breaker.state is CircuitState.CLOSED
    assert breaker.failure_count == 0


def test_breaker_half_open_probe_failure_reopens() -> None:
    clock = ManualClock()
    policy = CircuitBreakerPolicy(failure_threshold=1, reset_timeout_seconds=60.0)
    breaker = CircuitBreaker(policy, clock=clock)
    attempts: list[int] = []

    async def fail() -> str:
        attempts.append(1)
        raise RuntimeError("down")

    async def run() -> None:
        await breaker.call(fail, fallback=lambda: "fallback")
        clock.advance(61)
        await breaker.call(fail, fallback=lambda: "fallback")
        clock.advance(30)
        await breaker.call(fail, fallback=lambda: "fallback")

    asyncio.run(run())

    assert len(attempts) == 2
    assert breaker.state is CircuitState.OPEN


def test_breaker_success_while_closed_keeps_failure_count() -> None:
    breaker = CircuitBreaker(CircuitBreakerPolicy(failure_threshold=3), clock=ManualClock())

    async def fail() -> str:
        raise RuntimeError("down")

    async def succeed() -> str:
        return "ok"

    async def run() -> None:
        await breaker.call(fail, fallback=lambda: "x")
        await breaker.call(succeed, fallback=lambda: "x")

    asyncio.run(run())

    assert breaker.state is CircuitState.CLOSED
    assert breaker.failure_count == 1


# retry classification


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (_status_error(429), True),
        (_status_error(500), True),
        (_status_error(503), True),
        (_status_error(400), False),
        (_status_error(401), False),
        (httpx.ConnectError("reset"), True),
        (httpx.ReadTimeout("slow"), True),
        (ConnectionResetError(), True),
        (ValueError("bad payload"), False),
    ],
)
def test_is_retryable(error: Exception, expected: bool) -> None:  # noqa: FBT001
    assert is_retryable(error, BackoffPolicy()) is expected


def test_backoff_delay_doubles_and_caps() -> None:
    policy = BackoffPolicy(initial_backoff_seconds=1.0, max_backoff_seconds=10.0)

    delays = [backoff_delay(n, policy, jitter=lambda: 0.0) for n in range(1, 6)]

    assert delays == [1.0, 2.0, 4.0, 8.0, 10.0]
    assert backoff_delay(1, policy, jitter=lambda: 1.0) == pytest.approx(1.3)
