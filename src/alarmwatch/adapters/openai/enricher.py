"""Best-effort notes enrichment guarded by a rate limiter, retries and a breaker.

``transform`` never raises. Whatever goes wrong (rate limits, server errors,
dropped connections, an open circuit) the caller gets the original notes back.
"""

from __future__ import annotations

import asyncio
import random
import re
from logging import getLogger
from typing import TYPE_CHECKING, Final

from alarmwatch.adapters.resilience import (
    CircuitBreaker,
    SlidingWindowRateLimiter,
    backoff_delay,
    is_retryable,
    status_code_of,
)
from alarmwatch.config.resilience import BackoffPolicy

from .prompts import DISPATCH_NOTES_SYSTEM_PROMPT, NOTES_PREFIX_LABEL, USER_PREFIX

if TYPE_CHECKING:
    from collections.abc import Callable

    from alarmwatch.adapters.resilience import Sleeper
    from alarmwatch.config.enrichment import EnrichmentConfig
    from alarmwatch.domain.ports.enrichment import CompletionService

log = getLogger(__name__)

_NOTES_PREFIX: Final[re.Pattern[str]] = re.compile(
    rf"^{re.escape(NOTES_PREFIX_LABEL)}\s*", re.IGNORECASE
)


def strip_notes_prefix(notes: str) -> str:
    return _NOTES_PREFIX.sub("", notes.strip(), count=1)


class NotesEnrichmentClient:
    def __init__(
        self,
        service: CompletionService,
        *,
        backoff: BackoffPolicy | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        system_prompt: str = DISPATCH_NOTES_SYSTEM_PROMPT,
        sleep: Sleeper = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ) -> None:
        self._service = service
        self.backoff = backoff or BackoffPolicy()
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name="openai")
        self._system_prompt = system_prompt
        self._sleep = sleep
        self._jitter = jitter

    @classmethod
    def from_config(
        cls,
        config: EnrichmentConfig,
        service: CompletionService,
    ) -> NotesEnrichmentClient:
        return cls(
            service,
            backoff=config.backoff,
            rate_limiter=SlidingWindowRateLimiter(config.limit),
            circuit_breaker=CircuitBreaker(config.breaker, name="openai"),
        )

    async def transform(self, notes: str) -> str:
        if not notes or not notes.strip():
            return notes
        cleaned = strip_notes_prefix(notes)
        if not cleaned:
            return notes

        async def operation() -> str:
            return await self._complete_with_retry(cleaned, original=notes)

        return await self.circuit_breaker.call(operation, fallback=lambda: notes)

    async def _complete_with_retry(self, cleaned: str, *, original: str) -> str:
        """Attempt the completion up to ``max_retries + 1`` times.

        Raises the last error when attempts run out or the error is not
        retryable, so the circuit breaker records exactly one failure.
        """

        user_text = f"{USER_PREFIX}{cleaned}"
        attempts = self.backoff.max_retries + 1
        for attempt in range(1, attempts + 1):
            await self.rate_limiter.acquire()
            try:
                content = await self._service.complete(self._system_prompt, user_text)
            except Exception as exc:
                if attempt >= attempts or not is_retryable(exc, self.backoff):
                    log.warning(
                        "Notes enrichment failed after %d attempt(s): %s", attempt, exc
                    )
                    raise
                if status_code_of(exc) == self.backoff.rate_limited_status:
                    # the server's accounting disagrees with ours; start the window over
                    self.rate_limiter.reset()
                delay = backoff_delay(attempt, self.backoff, jitter=self._jitter)
                log.info(
                    "Notes enrichment attempt %d/%d failed (%s); retrying in %.2fs",
                    attempt,
                    attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)
                continue

            if not content:
                log.warning("Empty completion returned; keeping original notes")
                return original
            return content

        # unreachable: the final attempt either returns or raises
        return original
