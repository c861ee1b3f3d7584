"""Unit identifier heuristic for the dispatch board's description lines.

The board has no structured unit field. Each alarm lists ``label: value`` lines,
some of which describe the call (``Received: ...``, ``Call Type: ...``) and some of
which are unit status rows (``E307: Disp-14:02 EN-14:03 AR-14:09``). A label is
taken as a unit identifier when:

* it is not one of :data:`NON_UNIT_LABELS`, and
* its value contains at least one of :data:`UNIT_STATUS_MARKERS`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable

NON_UNIT_LABELS: Final[frozenset[str]] = frozenset({"Received", "Call Type", "Occupant"})

UNIT_STATUS_MARKERS: Final[tuple[str, ...]] = (
    "AR-",  # arrived
    "EN-",  # enroute
    "OS-",  # on scene
    "RE-",  # responding
    "Disp-",  # dispatched
)


def split_label(line: str) -> tuple[str, str] | None:
    """Split ``label: value`` at the first colon; ``None`` if there is no label."""

    colon = line.find(":")
    if colon <= 0:
        return None
    label = line[:colon].strip()
    if not label:
        return None
    return label, line[colon + 1 :]


def is_unit_line(label: str, value: str) -> bool:
    if label in NON_UNIT_LABELS:
        return False
    return any(marker in value for marker in UNIT_STATUS_MARKERS)


def parse_unit_ids(lines: Iterable[str]) -> tuple[str, ...]:
    """Return unit identifiers in order of first appearance."""

    units: list[str] = []
    for line in lines:
        parts = split_label(line)
        if parts is None:
            continue
        label, value = parts
        if is_unit_line(label, value) and label not in units:
            units.append(label)
    return tuple(units)


def labelled_value(lines: Iterable[str], label: str) -> str | None:
    """Return the stripped value of the first ``label:`` line, if any."""

    for line in lines:
        parts = split_label(line)
        if parts is None:
            continue
        found, value = parts
        if found == label:
            stripped = value.strip()
            return stripped or None
    return None
