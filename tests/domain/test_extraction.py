from __future__ import annotations

from alarmwatch.domain.extraction import extract_alarm, extract_dcid
from alarmwatch.domain.model import UNKNOWN_ADDRESS, UNKNOWN_CALL_TYPE, AlarmDetail
from alarmwatch.domain.ports.capture import ElementExtractionError
from tests.helpers.alarms import BASE_TIME, FakeElement, make_element


class _BrokenDescriptionElement(FakeElement):
    def extract_all(self, selector: str) -> list[str]:
        raise ElementExtractionError(f"detached while reading {selector}")


def test_extract_alarm_reads_all_fields() -> None:
    element = make_element("4242", units=("E307", "L74"), address="  9 ELM AVE ")

    captured = extract_alarm(element, now=BASE_TIME)

    assert captured is not None
    assert captured.dcid == "4242"
    assert captured.address == "9 ELM AVE"
    assert captured.call_type == "Structure Fire"
    assert captured.received_at == "02/14 10:00:00"
    assert captured.unit_ids == ("E307", "L74")


def test_extract_alarm_applies_defaults() -> None:
    element = make_element("7", address=None, call_type=None, received=None, units=())

    captured = extract_alarm(element, now=BASE_TIME)

    assert captured is not None
    assert captured.address == UNKNOWN_ADDRESS
    assert captured.call_type == UNKNOWN_CALL_TYPE
    assert captured.received_at == BASE_TIME.isoformat()
    assert captured.unit_ids == ()


def test_extract_alarm_without_dcid_returns_none() -> None:
    assert extract_alarm(make_element(None), now=BASE_TIME) is None


def test_extract_dcid_requires_numeric_id() -> None:
    element = FakeElement("abc")

    assert extract_dcid(element) is None


def test_unreadable_description_degrades_to_defaults() -> None:
    element = _BrokenDescriptionElement("55")

    captured = extract_alarm(element, now=BASE_TIME)

    assert captured is not None
    assert captured.call_type == UNKNOWN_CALL_TYPE
    assert captured.unit_ids == ()


def test_snapshot_hides_sentinels() -> None:
    element = make_element("8", address=None, call_type=None)
    captured = extract_alarm(element, now=BASE_TIME)
    assert captured is not None

    snapshot = captured.snapshot(AlarmDetail(notes="Call Notes: x"))

    assert snapshot.address is None
    assert snapshot.call_type is None
    assert snapshot.call_notes == "Call Notes: x"
