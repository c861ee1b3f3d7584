"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from alarmwatch.adapters.dispatch_board import DispatchBoardClient
from alarmwatch.adapters.openai import NotesEnrichmentClient, OpenAIChatClient
from alarmwatch.adapters.sqlalchemy import (
    SqlAlchemyAlarmStore,
    is_started,
    session_factory,
    startup,
)
from alarmwatch.config import (
    enrichment_enabled,
    get_dispatch_config,
    get_enrichment_config,
    get_scan_config,
)
from alarmwatch.domain.enrichment_dispatch import DEFAULT_CAPACITY, EnrichmentDispatcher
from alarmwatch.domain.reconciliation import ReconciliationEngine
from alarmwatch.domain.unit_registry import KnownUnitRegistry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from alarmwatch.config import DispatchConfig, EnrichmentConfig, ScanConfig
    from alarmwatch.domain.ports import AlarmStore, CompletionService, DispatchBoardSource
    from alarmwatch.domain.reconciliation import ScanResult

log = getLogger(__name__)


@dataclass(slots=True)
class Scanner:
    """A fully wired reconciliation engine plus the resources it owns."""

    engine: ReconciliationEngine
    dispatcher: EnrichmentDispatcher | None
    interval_seconds: float
    board: DispatchBoardClient | None = None
    completion: OpenAIChatClient | None = None

    async def aclose(self, *, drain: bool = True) -> None:
        if self.dispatcher is not None:
            await self.dispatcher.aclose(drain=drain)
        if self.board is not None:
            await self.board.aclose()
        if self.completion is not None:
            await self.completion.aclose()


def _default_store() -> SqlAlchemyAlarmStore:
    if not is_started():
        startup()
    return SqlAlchemyAlarmStore(session_factory())


def build_scanner(
    *,
    store: AlarmStore | None = None,
    source: DispatchBoardSource | None = None,
    completion: CompletionService | None = None,
    dispatch_config: DispatchConfig | None = None,
    enrichment_config: EnrichmentConfig | None = None,
    scan_config: ScanConfig | None = None,
) -> Scanner:
    """Wire configuration, adapters and the engine.

    Anything not passed in is built from the environment. Enrichment is skipped
    entirely (with a warning) when no ``OPENAI_API_KEY`` is configured and no
    completion service is injected.
    """

    effective_scan = scan_config or get_scan_config()
    effective_store = store or _default_store()

    board: DispatchBoardClient | None = None
    if source is None:
        board = DispatchBoardClient(dispatch_config or get_dispatch_config())
        source = board

    if enrichment_config is None and enrichment_enabled():
        enrichment_config = get_enrichment_config()

    owned_completion: OpenAIChatClient | None = None
    if completion is None and enrichment_config is not None:
        owned_completion = OpenAIChatClient(enrichment_config)
        completion = owned_completion

    dispatcher: EnrichmentDispatcher | None = None
    if completion is None:
        log.warning("OPENAI_API_KEY not set; AI notes enrichment disabled")
    else:
        enricher = (
            NotesEnrichmentClient.from_config(enrichment_config, completion)
            if enrichment_config is not None
            else NotesEnrichmentClient(completion)
        )
        dispatcher = EnrichmentDispatcher(
            enricher,
            effective_store,
            capacity=enrichment_config.queue_size if enrichment_config else DEFAULT_CAPACITY,
        )

    engine = ReconciliationEngine(
        source=source,
        store=effective_store,
        registry=KnownUnitRegistry(effective_store.list_known_unit_ids),
        dispatcher=dispatcher,
        detail_timeout=effective_scan.detail_timeout_seconds,
    )
    return Scanner(
        engine=engine,
        dispatcher=dispatcher,
        interval_seconds=effective_scan.interval_seconds,
        board=board,
        completion=owned_completion,
    )


async def run_scanner(
    engine: ReconciliationEngine,
    dispatcher: EnrichmentDispatcher | None,
    interval: float,
    max_cycles: int | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_cycle: Callable[[ScanResult], None] | None = None,
) -> int:
    """Run scan cycles with a fixed delay between them; return the cycle count.

    Cycles never overlap: the next one starts ``interval`` seconds after the
    previous one finished. With ``max_cycles`` set, the dispatcher is drained
    before returning so every queued enrichment has an outcome.
    """

    if dispatcher is not None:
        dispatcher.start()

    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        cycles += 1
        log.info("Starting scan cycle %d", cycles)
        result = await engine.scan()
        log.info(
            "Scan cycle %d finished: captured=%d created=%d updated=%d unchanged=%d "
            "skipped=%d failed=%d deassigned=%d aborted=%s",
            cycles,
            result.captured,
            result.created,
            result.updated,
            result.unchanged,
            result.skipped,
            result.failed,
            result.deassigned,
            result.aborted,
        )
        if on_cycle is not None:
            on_cycle(result)
        if max_cycles is not None and cycles >= max_cycles:
            break
        log.debug("Waiting %.0fs before the next cycle", interval)
        await sleep(interval)

    if dispatcher is not None:
        await dispatcher.drain()
    return cycles


async def scan(*, once: bool = False, interval: float | None = None) -> int:
    """Build a scanner from the environment and run it until stopped."""

    scanner = build_scanner()
    drained = False
    try:
        cycles = await run_scanner(
            scanner.engine,
            scanner.dispatcher,
            interval if interval is not None else scanner.interval_seconds,
            max_cycles=1 if once else None,
        )
        drained = True
    finally:
        await scanner.aclose(drain=drained)
    return cycles


def add_known_units(
    unit_ids: Iterable[str],
    *,
    store: SqlAlchemyAlarmStore | None = None,
) -> set[str]:
    effective_store = store or _default_store()
    added = effective_store.add_known_units(unit_ids)
    log.info("Registered %d new known units", len(added))
    return added


def list_known_units(*, store: AlarmStore | None = None) -> list[str]:
    effective_store = store or _default_store()
    return sorted(effective_store.list_known_unit_ids())
