from __future__ import annotations

import asyncio

import pytest

from alarmwatch.domain.enrichment_dispatch import EnrichmentDispatcher, EnrichmentStatus
from alarmwatch.domain.model import UNKNOWN_ADDRESS, ActiveAlarm
from alarmwatch.domain.reconciliation import ReconciliationEngine, ScanResult
from alarmwatch.domain.unit_registry import KnownUnitRegistry
from tests.helpers.alarms import (
    FakeAlarmStore,
    FakeBoardSource,
    FakeEnricher,
    TickingClock,
    make_element,
)


def _engine(
    store: FakeAlarmStore,
    source: FakeBoardSource,
    *,
    dispatcher: EnrichmentDispatcher | None = None,
    detail_timeout: float = 5.0,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        source=source,
        store=store,
        registry=KnownUnitRegistry(store.list_known_unit_ids),
        dispatcher=dispatcher,
        detail_timeout=detail_timeout,
        clock=TickingClock(),
    )


def _scan(engine: ReconciliationEngine) -> ScanResult:
    return asyncio.run(engine.scan())


@pytest.fixture
def store() -> FakeAlarmStore:
    return FakeAlarmStore(known_units={"E1", "L2", "B2"})


def test_new_alarm_is_created_with_its_units(store: FakeAlarmStore) -> None:
    element = make_element("100", units=("E1", "L2"), notes="Call Notes: smoke")
    source = FakeBoardSource([[element]])

    result = _scan(_engine(store, source))

    assert result.created == 1
    assert result.processed == 1
    alarm = store.alarm_by_dcid("100")
    assert alarm.address == "12 MAIN ST"
    assert alarm.call_type == "Structure Fire"
    assert alarm.call_notes == "Call Notes: smoke"
    assert store.active_units(alarm.id) == {"E1", "L2"}
    assert not any(assignment.is_external for assignment in store.assignments)


def test_repeated_identical_board_is_idempotent(store: FakeAlarmStore) -> None:
    board = [make_element("100", units=("E1", "L2"), notes="Call Notes: smoke")]
    source = FakeBoardSource([board, board])
    engine = _engine(store, source)

    _scan(engine)
    mutations_after_first = list(store.mutations)
    second = _scan(engine)

    assert second.unchanged == 1
    assert second.created == second.updated == 0
    assert store.mutations == mutations_after_first


def test_unit_leaves_and_returns_reuses_its_assignment(store: FakeAlarmStore) -> None:
    source = FakeBoardSource(
        [
            [make_element("100", units=("E1", "L2"))],
            [make_element("100", units=("E1",))],
            [make_element("100", units=("E1", "L2"))],
        ]
    )
    engine = _engine(store, source)

    _scan(engine)
    alarm_id = store.alarm_by_dcid("100").id

    second = _scan(engine)
    assert second.updated == 1
    assert store.active_units(alarm_id) == {"E1"}
    (l2_row,) = store.assignments_for(alarm_id, "L2")
    assert l2_row.deassigned_at is not None

    third = _scan(engine)
    assert third.updated == 1
    assert store.active_units(alarm_id) == {"E1", "L2"}
    assert store.assignments_for(alarm_id, "L2") == [l2_row]
    assert l2_row.is_active
    assert len(store.assignments_for(alarm_id, "E1")) == 1


def test_field_change_updates_only_that_field(store: FakeAlarmStore) -> None:
    source = FakeBoardSource(
        [
            [make_element("100", call_type="Alarm")],
            [make_element("100", call_type="Structure Fire")],
        ]
    )
    engine = _engine(store, source)
    _scan(engine)
    before = store.alarm_by_dcid("100").last_updated

    result = _scan(engine)

    assert result.updated == 1
    alarm = store.alarm_by_dcid("100")
    assert alarm.call_type == "Structure Fire"
    assert alarm.last_updated > before
    _, (_, update) = store.mutations[-1]  # type: ignore[misc]
    assert update.values().keys() == {"call_type", "last_updated"}


def test_unobserved_fields_do_not_overwrite_known_values(store: FakeAlarmStore) -> None:
    source = FakeBoardSource(
        [
            [make_element("100", notes="Call Notes: smoke", timeline="02/14 10:01:00 E1")],
            [make_element("100", address=None, call_type=None)],
        ]
    )
    engine = _engine(store, source)
    _scan(engine)

    result = _scan(engine)

    assert result.unchanged == 1
    alarm = store.alarm_by_dcid("100")
    assert alarm.address == "12 MAIN ST"
    assert alarm.address != UNKNOWN_ADDRESS
    assert alarm.call_notes == "Call Notes: smoke"
    assert alarm.call_timeline == "02/14 10:01:00 E1"


def test_alarm_missing_from_board_is_deassigned(store: FakeAlarmStore) -> None:
    source = FakeBoardSource(
        [
            [make_element("100"), make_element("200", units=("L2",))],
            [make_element("100")],
        ]
    )
    engine = _engine(store, source)
    _scan(engine)

    result = _scan(engine)

    assert result.deassigned == 1
    assert store.active_units(store.alarm_by_dcid("200").id) == set()
    assert store.active_units(store.alarm_by_dcid("100").id) == {"E1"}


def test_empty_board_deassigns_everything(store: FakeAlarmStore) -> None:
    source = FakeBoardSource([[make_element("100"), make_element("200")], []])
    engine = _engine(store, source)
    _scan(engine)

    result = _scan(engine)

    assert result.board_cleared
    assert result.deassigned == 2
    assert store.get_active_alarms() == []


def test_unknown_units_are_flagged_external(store: FakeAlarmStore) -> None:
    source = FakeBoardSource([[make_element("100", units=("E1", "MA3"))]])

    _scan(_engine(store, source))

    alarm_id = store.alarm_by_dcid("100").id
    (ma3,) = store.assignments_for(alarm_id, "MA3")
    (e1,) = store.assignments_for(alarm_id, "E1")
    assert ma3.is_external
    assert not e1.is_external


def test_element_without_dcid_is_skipped(store: FakeAlarmStore) -> None:
    source = FakeBoardSource([[make_element(None), make_element("100")]])

    result = _scan(_engine(store, source))

    assert result.skipped == 1
    assert result.created == 1
    assert result.captured == 2


def test_skipped_element_does_not_protect_stored_alarms(store: FakeAlarmStore) -> None:
    source = FakeBoardSource(
        [[make_element("100"), make_element("200")], [make_element(None)]]
    )
    engine = _engine(store, source)
    _scan(engine)

    result = _scan(engine)

    assert result.skipped == 1
    assert not result.board_cleared
    assert result.deassigned == 2


def test_capture_failure_aborts_cycle_without_mutations(store: FakeAlarmStore) -> None:
    source = FakeBoardSource([[make_element("100")], RuntimeError("board down")])
    engine = _engine(store, source)
    _scan(engine)
    mutations = list(store.mutations)

    result = _scan(engine)

    assert result.aborted
    assert store.mutations == mutations
    assert store.active_units(store.alarm_by_dcid("100").id) == {"E1"}


def test_persistence_failure_skips_one_alarm_only(store: FakeAlarmStore) -> None:
    store.fail_on.add("create_alarm")
    source = FakeBoardSource([[make_element("100"), make_element("200")]])

    result = _scan(_engine(store, source))

    assert result.failed == 2
    assert result.processed == 0
    assert not result.aborted
    assert store.alarms == {}


def test_failed_detail_fetch_falls_back_to_empty_detail(store: FakeAlarmStore) -> None:
    source = FakeBoardSource(
        [
            [
                make_element("100", detail_error=RuntimeError("detail page broken")),
                make_element("200", notes="Call Notes: ok", detail_delay=1.0),
            ]
        ]
    )

    result = _scan(_engine(store, source, detail_timeout=0.01))

    assert result.created == 2
    assert store.alarm_by_dcid("100").call_notes is None
    assert store.alarm_by_dcid("200").call_notes is None


def test_new_alarm_with_notes_is_enriched_once(store: FakeAlarmStore) -> None:
    enricher = FakeEnricher(result="Smoke reported in basement.")
    board = [make_element("100", notes="Call Notes: SMOKE IN BSMT")]
    source = FakeBoardSource([board, board])

    async def run() -> EnrichmentDispatcher:
        dispatcher = EnrichmentDispatcher(enricher, store)
        engine = _engine(store, source, dispatcher=dispatcher)
        await engine.scan()
        await engine.scan()
        await dispatcher.aclose()
        return dispatcher

    dispatcher = asyncio.run(run())

    assert enricher.seen == ["Call Notes: SMOKE IN BSMT"]
    assert store.alarm_by_dcid("100").ai_notes == "Smoke reported in basement."
    assert [outcome.status for outcome in dispatcher.outcomes] == [EnrichmentStatus.APPLIED]


def test_alarm_without_notes_is_not_enriched(store: FakeAlarmStore) -> None:
    enricher = FakeEnricher()
    source = FakeBoardSource([[make_element("100", notes=None)]])

    async def run() -> None:
        dispatcher = EnrichmentDispatcher(enricher, store)
        await _engine(store, source, dispatcher=dispatcher).scan()
        await dispatcher.aclose()

    asyncio.run(run())

    assert enricher.seen == []
    assert store.alarm_by_dcid("100").ai_notes is None


class _StaleActiveStore(FakeAlarmStore):
    """Reports every alarm as active, as if another writer closed it mid-cycle."""

    def get_active_alarms(self) -> list[ActiveAlarm]:
        return [
            ActiveAlarm(id=alarm.id, dcid=alarm.dcid, unit_ids=frozenset({"E1"}))
            for alarm in self.alarms.values()
        ]


def test_removed_alarm_already_closed_is_not_deassigned() -> None:
    store = _StaleActiveStore(known_units={"E1"})
    source = FakeBoardSource([[make_element("100")], [make_element("200")]])
    engine = _engine(store, source)
    _scan(engine)
    closed_id = store.alarm_by_dcid("100").id
    store.deactivate_all_assignments(closed_id)
    mutations_before = len(store.mutations)

    result = _scan(engine)

    assert result.deassigned == 0
    assert ("deactivate_all_assignments", closed_id) not in store.mutations[mutations_before:]
    assert result.created == 1


def test_alarm_reappearing_after_board_clear_reactivates_assignments(
    store: FakeAlarmStore,
) -> None:
    source = FakeBoardSource([[make_element("100")], [], [make_element("100")]])
    engine = _engine(store, source)
    _scan(engine)
    cleared = _scan(engine)

    result = _scan(engine)

    assert cleared.deassigned == 1
    assert result.updated == 1
    assert result.created == 0
    assert len(store.alarms) == 1
    alarm_id = store.alarm_by_dcid("100").id
    (e1,) = store.assignments_for(alarm_id, "E1")
    assert e1.is_active


def test_failed_unit_assignment_counts_new_alarm_as_failed(store: FakeAlarmStore) -> None:
    store.fail_on.add("create_assignments")
    source = FakeBoardSource([[make_element("100")], [make_element("100")]])
    engine = _engine(store, source)

    first = _scan(engine)
    store.fail_on.clear()
    second = _scan(engine)

    assert first.failed == 1
    assert first.created == 0
    assert first.processed == 0
    assert second.updated == 1
    assert store.active_units(store.alarm_by_dcid("100").id) == {"E1"}
