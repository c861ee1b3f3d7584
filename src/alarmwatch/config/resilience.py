"""Configuration types for resilient outbound calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Transport-level retries for idempotent requests against the dispatch board."""

    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 10.0
    respect_retry_after_header: bool = True
    allowed_methods: frozenset[str] = field(default_factory=lambda: frozenset({"GET", "HEAD"}))
    status_forcelist: frozenset[int] = field(
        default_factory=lambda: frozenset({429, 500, 502, 503, 504})
    )
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )
    backoff_jitter: float = 1.0


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    follow_redirects: bool = True
    default_headers: Mapping[str, str] | None = None


@dataclass(slots=True, frozen=True)
class SlidingWindowLimit:
    """At most ``max_calls`` within any trailing ``window_seconds``."""

    max_calls: int = 60
    window_seconds: float = 60.0
    buffer_seconds: float = 0.1


@dataclass(slots=True, frozen=True)
class CircuitBreakerPolicy:
    failure_threshold: int = 5
    reset_timeout_seconds: float = 60.0


@dataclass(slots=True, frozen=True)
class BackoffPolicy:
    """Application-level retry schedule: ``initial * 2**(attempt - 1) * (1 + jitter)``."""

    max_retries: int = 3
    initial_backoff_seconds: float = 1.0
    max_backoff_seconds: float = 10.0
    max_jitter_ratio: float = 0.3
    rate_limited_status: int = 429

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code == self.rate_limited_status or 500 <= status_code < 600  # noqa: PLR2004
