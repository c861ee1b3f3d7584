"""Compare a persisted alarm with a freshly captured snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Set

    from .model import Alarm, AlarmSnapshot


@dataclass(slots=True, frozen=True, kw_only=True)
class AlarmChanges:
    """Per-field change flags plus the unit-set delta for one alarm."""

    call_type_changed: bool = False
    address_changed: bool = False
    notes_changed: bool = False
    timeline_changed: bool = False
    units_added: frozenset[str] = field(default_factory=frozenset[str])
    units_removed: frozenset[str] = field(default_factory=frozenset[str])

    @property
    def fields_changed(self) -> bool:
        return (
            self.call_type_changed
            or self.address_changed
            or self.notes_changed
            or self.timeline_changed
        )

    @property
    def units_changed(self) -> bool:
        return bool(self.units_added or self.units_removed)

    @property
    def has_any_changes(self) -> bool:
        return self.fields_changed or self.units_changed


def _changed(incoming: str | None, existing: str | None) -> bool:
    # an absent incoming value never counts as a change
    return bool(incoming) and incoming != existing


def detect_changes(
    existing: Alarm,
    incoming: AlarmSnapshot,
    existing_units: Set[str],
    incoming_units: Set[str],
) -> AlarmChanges:
    """Return which tracked fields and unit assignments differ.

    A scalar field is flagged only when the incoming value is present and differs
    from the stored one, so a capture that fails to observe a field never wipes
    what was recorded earlier. Unit deltas are plain set differences.
    """

    return AlarmChanges(
        call_type_changed=_changed(incoming.call_type, existing.call_type),
        address_changed=_changed(incoming.address, existing.address),
        notes_changed=_changed(incoming.call_notes, existing.call_notes),
        timeline_changed=_changed(incoming.call_timeline, existing.call_timeline),
        units_added=frozenset(incoming_units - existing_units),
        units_removed=frozenset(existing_units - incoming_units),
    )
