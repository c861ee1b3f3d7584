"""One scan cycle: reconcile the dispatch board against stored alarms.

A cycle reads the alarms that currently hold active unit assignments, captures
the board, and then walks the captured elements one at a time:

* new ``dcid``  -> create the alarm, assign its units, queue notes enrichment;
* known ``dcid`` -> write only the fields that changed and adjust assignments;
* stored alarm missing from the board -> close all of its assignments.

Elements are processed sequentially. Assignment updates for an alarm read the
active units and then write, without a surrounding transaction, so two cycles
must never run at the same time.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from .change_detection import AlarmChanges, detect_changes
from .enrichment_dispatch import EnrichmentJob
from .extraction import DEFAULT_SELECTORS, extract_alarm
from .model import AlarmDetail, AlarmUpdate, utcnow
from .ports.persistence import PersistenceError

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable
    from datetime import datetime

    from .enrichment_dispatch import EnrichmentDispatcher
    from .extraction import BoardSelectors
    from .model import ActiveAlarm, Alarm, CapturedAlarm
    from .ports.capture import DispatchBoardSource, RawAlarmElement
    from .ports.persistence import AlarmStore
    from .unit_registry import KnownUnitRegistry

log = getLogger(__name__)

DEFAULT_DETAIL_TIMEOUT_SECONDS = 30.0


class AlarmOutcome(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(slots=True)
class ScanResult:
    """Summary of one scan cycle."""

    captured: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    deassigned: int = 0
    board_cleared: bool = False
    aborted: bool = False

    def count(self, outcome: AlarmOutcome) -> None:
        match outcome:
            case AlarmOutcome.CREATED:
                self.created += 1
            case AlarmOutcome.UPDATED:
                self.updated += 1
            case AlarmOutcome.UNCHANGED:
                self.unchanged += 1
            case AlarmOutcome.FAILED:
                self.failed += 1


class ReconciliationEngine:
    def __init__(
        self,
        *,
        source: DispatchBoardSource,
        store: AlarmStore,
        registry: KnownUnitRegistry,
        dispatcher: EnrichmentDispatcher | None = None,
        detail_timeout: float = DEFAULT_DETAIL_TIMEOUT_SECONDS,
        selectors: BoardSelectors = DEFAULT_SELECTORS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._source = source
        self._store = store
        self._registry = registry
        self._dispatcher = dispatcher
        self._detail_timeout = detail_timeout
        self._selectors = selectors
        self._clock = clock

    async def scan(self) -> ScanResult:
        """Run one cycle. Never raises; a failed cycle is reported as ``aborted``."""

        result = ScanResult()
        try:
            await self._scan(result)
        except Exception:
            log.exception("Scan cycle failed; will retry on the next cycle")
            result.aborted = True
        return result

    async def _scan(self, result: ScanResult) -> None:
        before = self._store.get_active_alarms()
        log.info("Database: %d active alarms", len(before))

        elements = await self._source.list_active_elements()
        result.captured = len(elements)
        log.info("Dispatch board: %d active alarms", len(elements))

        if not elements:
            result.board_cleared = True
            if before:
                # an empty board and a capture that silently returned nothing look the same
                log.warning(
                    "Dispatch board is empty; deassigning units from %d active alarms",
                    len(before),
                )
            self._deassign_missing(before, result)
            return

        seen: set[str] = set()
        for index, element in enumerate(elements, start=1):
            try:
                captured = extract_alarm(element, now=self._clock(), selectors=self._selectors)
            except Exception:
                log.exception("Alarm element %d could not be read; skipping", index)
                result.skipped += 1
                continue
            if captured is None:
                log.warning("Alarm element %d has no dispatch id; skipping", index)
                result.skipped += 1
                continue

            seen.add(captured.dcid)
            try:
                outcome = await self._reconcile(captured, element)
            except Exception:
                log.exception("Error processing alarm #%s", captured.dcid)
                result.failed += 1
                continue
            result.count(outcome)
            if outcome is not AlarmOutcome.FAILED:
                result.processed += 1

        if result.processed != result.captured:
            log.warning("Processed %d of %d alarms", result.processed, result.captured)

        missing = [alarm for alarm in before if alarm.dcid not in seen]
        if missing:
            log.info("Processing %d alarms no longer on the dispatch board", len(missing))
        self._deassign_missing(missing, result)

    async def _reconcile(self, captured: CapturedAlarm, element: RawAlarmElement) -> AlarmOutcome:
        if captured.unit_ids:
            log.info("Alarm #%s units: %s", captured.dcid, ", ".join(captured.unit_ids))
        detail = await self._fetch_detail(element, captured.dcid)

        try:
            existing = self._store.get_alarm_by_dcid(captured.dcid)
        except PersistenceError:
            log.exception("Failed to look up alarm #%s", captured.dcid)
            return AlarmOutcome.FAILED

        if existing is None:
            return self._create(captured, detail)
        return self._update(existing, captured, detail)

    async def _fetch_detail(self, element: RawAlarmElement, dcid: str) -> AlarmDetail:
        try:
            return await asyncio.wait_for(
                element.fetch_detail(dcid), timeout=self._detail_timeout
            )
        except TimeoutError:
            log.warning(
                "Timed out after %.0fs fetching details for alarm #%s", self._detail_timeout, dcid
            )
        except Exception:  # noqa: BLE001
            log.warning("Error fetching details for alarm #%s", dcid, exc_info=True)
        return AlarmDetail()

    def _create(self, captured: CapturedAlarm, detail: AlarmDetail) -> AlarmOutcome:
        try:
            alarm_id = self._store.create_alarm(captured.new_alarm(detail, now=self._clock()))
        except PersistenceError:
            log.exception("Failed to create alarm record for dcid %s", captured.dcid)
            return AlarmOutcome.FAILED

        log.info("Created new alarm #%s at %s", captured.dcid, captured.address)
        assigned = not captured.unit_ids or self._assign_units(
            alarm_id, captured.dcid, captured.unit_ids, reactivate=False
        )

        if detail.notes and self._dispatcher is not None:
            self._dispatcher.submit(
                EnrichmentJob(alarm_id=alarm_id, dcid=captured.dcid, notes=detail.notes)
            )
        return AlarmOutcome.CREATED if assigned else AlarmOutcome.FAILED

    def _update(
        self,
        existing: Alarm,
        captured: CapturedAlarm,
        detail: AlarmDetail,
    ) -> AlarmOutcome:
        try:
            active_units = self._store.get_active_unit_ids(existing.id)
        except PersistenceError:
            log.exception("Failed to read active units for alarm #%s", existing.dcid)
            return AlarmOutcome.FAILED

        snapshot = captured.snapshot(detail)
        changes = detect_changes(existing, snapshot, active_units, set(captured.unit_ids))
        if not changes.has_any_changes:
            log.debug("No changes detected for alarm #%s", existing.dcid)
            return AlarmOutcome.UNCHANGED

        _log_changes(existing, changes)
        update = AlarmUpdate(
            # last_updated never moves backwards, even if the clock does
            last_updated=max(self._clock(), existing.last_updated),
            call_type=snapshot.call_type if changes.call_type_changed else None,
            address=snapshot.address if changes.address_changed else None,
            call_notes=snapshot.call_notes if changes.notes_changed else None,
            call_timeline=snapshot.call_timeline if changes.timeline_changed else None,
        )
        applied = True
        try:
            self._store.update_alarm(existing.id, update)
        except PersistenceError:
            log.exception("Failed to update alarm #%s", existing.dcid)
            applied = False

        if changes.units_changed:
            applied = self._apply_unit_changes(existing, captured, changes) and applied
        return AlarmOutcome.UPDATED if applied else AlarmOutcome.FAILED

    def _apply_unit_changes(
        self,
        alarm: Alarm,
        captured: CapturedAlarm,
        changes: AlarmChanges,
    ) -> bool:
        applied = True
        if changes.units_removed:
            removed = sorted(changes.units_removed)
            try:
                self._store.deactivate_assignments(alarm.id, removed)
            except PersistenceError:
                log.exception("Failed to deactivate units for alarm #%s", alarm.dcid)
                applied = False
            else:
                log.info("Alarm #%s: units removed: %s", alarm.dcid, ", ".join(removed))

        if changes.units_added:
            added = [unit for unit in captured.unit_ids if unit in changes.units_added]
            applied = self._assign_units(alarm.id, alarm.dcid, added, reactivate=True) and applied
        return applied

    def _assign_units(
        self,
        alarm_id: int,
        dcid: str,
        unit_ids: Iterable[str],
        *,
        reactivate: bool,
    ) -> bool:
        """Assign ``unit_ids``, reopening closed rows first when ``reactivate`` is set."""

        remaining = list(unit_ids)
        if reactivate and remaining:
            try:
                reopened = self._store.reactivate_assignments(alarm_id, remaining)
            except PersistenceError:
                log.exception("Failed to reactivate units for alarm #%s", dcid)
                return False
            if reopened:
                log.info("Alarm #%s: units reactivated: %s", dcid, ", ".join(sorted(reopened)))
            remaining = [unit for unit in remaining if unit not in reopened]

        if not remaining:
            return True

        external = self._registry.external_units(remaining)
        try:
            self._store.create_assignments(alarm_id, remaining, external_ids=external)
        except PersistenceError:
            log.exception("Failed to create unit assignments for alarm #%s", dcid)
            return False

        log.info("Alarm #%s: units assigned: %s", dcid, ", ".join(remaining))
        if external:
            log.info("Alarm #%s: external units: %s", dcid, ", ".join(sorted(external)))
        return True

    def _deassign_missing(self, alarms: Collection[ActiveAlarm], result: ScanResult) -> None:
        for alarm in alarms:
            if self._deassign(alarm):
                result.deassigned += 1

    def _deassign(self, alarm: ActiveAlarm) -> bool:
        try:
            # re-check: the alarm may have been closed since the cycle started
            active_units = self._store.get_active_unit_ids(alarm.id)
            if not active_units:
                return False
            log.info(
                "Deassigning units from alarm #%s: %s",
                alarm.dcid,
                ", ".join(sorted(active_units)),
            )
            if not self._store.deactivate_all_assignments(alarm.id):
                log.error("Failed to deassign units from alarm #%s", alarm.dcid)
                return False
        except PersistenceError:
            log.exception("Error processing removed alarm #%s", alarm.dcid)
            return False
        return True


def _log_changes(alarm: Alarm, changes: AlarmChanges) -> None:
    if changes.call_type_changed:
        log.info("Alarm #%s: call type updated", alarm.dcid)
    if changes.address_changed:
        log.info("Alarm #%s: address updated", alarm.dcid)
    if changes.notes_changed:
        log.info("Alarm #%s: call notes updated", alarm.dcid)
    if changes.timeline_changed:
        log.info("Alarm #%s: call timeline updated", alarm.dcid)