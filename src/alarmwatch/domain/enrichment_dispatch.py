"""Bounded background queue for post-creation notes enrichment.

Scan cycles hand jobs to :class:`EnrichmentDispatcher` and move on. A single
worker task drains the queue, so the enricher's rate limiter and circuit breaker
are only ever touched from one coroutine. Every job ends in exactly one
:class:`EnrichmentOutcome`, including jobs dropped because the queue was full or
the dispatcher shut down before reaching them.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from .model import AlarmUpdate, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from .ports.enrichment import NotesEnricher
    from .ports.persistence import AlarmStore

log = getLogger(__name__)

DEFAULT_CAPACITY = 100
DEFAULT_HISTORY = 500


class EnrichmentStatus(StrEnum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    DROPPED = "dropped"


@dataclass(slots=True, frozen=True)
class EnrichmentJob:
    alarm_id: int
    dcid: str
    notes: str


@dataclass(slots=True, frozen=True)
class EnrichmentOutcome:
    job: EnrichmentJob
    status: EnrichmentStatus
    ai_notes: str | None = None


class EnrichmentDispatcher:
    def __init__(
        self,
        enricher: NotesEnricher,
        store: AlarmStore,
        *,
        capacity: int = DEFAULT_CAPACITY,
        history: int = DEFAULT_HISTORY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if capacity < 1:
            raise ValueError("Enrichment queue capacity must be at least 1")
        self._enricher = enricher
        self._store = store
        self._capacity = capacity
        self._clock = clock
        self._queue: asyncio.Queue[EnrichmentJob] | None = None
        self._worker: asyncio.Task[None] | None = None
        self.outcomes: deque[EnrichmentOutcome] = deque(maxlen=history)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Start the worker on the running event loop (idempotent)."""

        if self.running:
            return
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._capacity)
        elif not self._queue.empty():
            log.warning("Restarting enrichment worker with %d jobs pending", self._queue.qsize())
        self._worker = asyncio.get_running_loop().create_task(
            self._run(), name="alarmwatch-enrichment"
        )

    def submit(self, job: EnrichmentJob) -> bool:
        """Queue ``job`` without waiting; returns ``False`` if it was dropped."""

        self.start()
        assert self._queue is not None  # noqa: S101
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            log.warning(
                "Enrichment queue full (%d pending); dropping notes for alarm #%s",
                self._queue.qsize(),
                job.dcid,
            )
            self._record(job, EnrichmentStatus.DROPPED)
            return False
        log.debug("Queued notes enrichment for alarm #%s", job.dcid)
        return True

    async def drain(self) -> None:
        """Wait until every queued job has an outcome."""

        if self._queue is None or not self.running:
            return
        await self._queue.join()

    async def aclose(self, *, drain: bool = True) -> None:
        if drain:
            await self.drain()
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        queue, self._queue = self._queue, None
        while queue is not None and not queue.empty():
            job = queue.get_nowait()
            log.warning("Dispatcher closed before enriching alarm #%s", job.dcid)
            self._record(job, EnrichmentStatus.DROPPED)

    async def _run(self) -> None:
        assert self._queue is not None  # noqa: S101
        queue = self._queue
        while True:
            job = await queue.get()
            try:
                await self._process(job)
            except asyncio.CancelledError:
                log.warning("Dispatcher closed while enriching alarm #%s", job.dcid)
                self._record(job, EnrichmentStatus.DROPPED)
                raise
            except Exception:
                log.exception("Unexpected error enriching alarm #%s", job.dcid)
                self._record(job, EnrichmentStatus.FAILED)
            finally:
                queue.task_done()

    async def _process(self, job: EnrichmentJob) -> None:
        try:
            ai_notes = await self._enricher.transform(job.notes)
        except Exception:
            log.exception("Notes enrichment failed for alarm #%s", job.dcid)
            self._record(job, EnrichmentStatus.FAILED)
            return

        if not ai_notes:
            self._record(job, EnrichmentStatus.SKIPPED)
            return

        try:
            existing = self._store.get_alarm_by_dcid(job.dcid)
            now = self._clock()
            last_updated = max(now, existing.last_updated) if existing is not None else now
            self._store.update_alarm(
                job.alarm_id,
                AlarmUpdate(ai_notes=ai_notes, last_updated=last_updated),
            )
        except Exception:
            log.exception("Failed to store AI notes for alarm #%s", job.dcid)
            self._record(job, EnrichmentStatus.FAILED, ai_notes)
            return

        log.info("Stored AI notes for alarm #%s", job.dcid)
        self._record(job, EnrichmentStatus.APPLIED, ai_notes)

    def _record(
        self,
        job: EnrichmentJob,
        status: EnrichmentStatus,
        ai_notes: str | None = None,
    ) -> None:
        self.outcomes.append(EnrichmentOutcome(job=job, status=status, ai_notes=ai_notes))
