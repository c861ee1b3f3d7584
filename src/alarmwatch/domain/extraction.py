"""Turn raw board elements into :class:`CapturedAlarm` values."""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from .model import UNKNOWN_ADDRESS, UNKNOWN_CALL_TYPE, CapturedAlarm
from .ports.capture import ElementExtractionError
from .unit_parsing import labelled_value, parse_unit_ids

if TYPE_CHECKING:
    from datetime import datetime

    from .ports.capture import RawAlarmElement

log = getLogger(__name__)

DCID_PATTERN: Final[re.Pattern[str]] = re.compile(r"dcid=(\d+)")


@dataclass(frozen=True, slots=True)
class BoardSelectors:
    alarm_link: str = 'a[href^="callinfo.ra?dcid="]'
    address: str = "h3"
    description: str = "p.ui-li-desc"


DEFAULT_SELECTORS: Final[BoardSelectors] = BoardSelectors()


def extract_dcid(
    element: RawAlarmElement,
    selectors: BoardSelectors = DEFAULT_SELECTORS,
) -> str | None:
    href = element.extract_field(selectors.alarm_link, attribute="href")
    if not href:
        return None
    match = DCID_PATTERN.search(href)
    return match.group(1) if match else None


def _field_or_none(element: RawAlarmElement, selector: str) -> str | None:
    try:
        value = element.extract_field(selector)
    except ElementExtractionError:
        log.debug("Field %s could not be read", selector, exc_info=True)
        return None
    if value is None:
        return None
    return value.strip() or None


def _description_lines(element: RawAlarmElement, selector: str) -> list[str]:
    try:
        return [line.strip() for line in element.extract_all(selector)]
    except ElementExtractionError:
        log.warning("Description lines could not be read", exc_info=True)
        return []


def extract_alarm(
    element: RawAlarmElement,
    *,
    now: datetime,
    selectors: BoardSelectors = DEFAULT_SELECTORS,
) -> CapturedAlarm | None:
    """Extract one alarm, or ``None`` when no ``dcid`` can be derived.

    Missing address, call type or received time fall back to
    :data:`UNKNOWN_ADDRESS`, :data:`UNKNOWN_CALL_TYPE` and ``now`` respectively.
    """

    dcid = extract_dcid(element, selectors)
    if dcid is None:
        return None

    lines = _description_lines(element, selectors.description)
    return CapturedAlarm(
        dcid=dcid,
        address=_field_or_none(element, selectors.address) or UNKNOWN_ADDRESS,
        call_type=labelled_value(lines, "Call Type") or UNKNOWN_CALL_TYPE,
        received_at=labelled_value(lines, "Received") or now.isoformat(),
        unit_ids=parse_unit_ids(lines),
    )
