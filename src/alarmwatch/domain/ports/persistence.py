"""Ports for persisting alarms and unit assignments."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection

    from alarmwatch.domain.model import ActiveAlarm, Alarm, AlarmUpdate, NewAlarm


class PersistenceError(RuntimeError):
    """Raised by stores when a read or write could not be completed."""


@runtime_checkable
class AlarmStore(Protocol):
    """Keyed store for alarms, their unit assignments and the known-unit registry.

    Every method may raise :class:`PersistenceError`. Callers treat a failed write
    as "not applied" and let the next scan cycle derive the same change again.
    """

    def get_active_alarms(self) -> list[ActiveAlarm]: ...

    def get_alarm_by_dcid(self, dcid: str) -> Alarm | None: ...

    def create_alarm(self, alarm: NewAlarm) -> int: ...

    def update_alarm(self, alarm_id: int, update: AlarmUpdate) -> None: ...

    def get_active_unit_ids(self, alarm_id: int) -> set[str]: ...

    def create_assignments(
        self,
        alarm_id: int,
        unit_ids: Collection[str],
        *,
        external_ids: Collection[str] = (),
    ) -> None: ...

    def reactivate_assignments(self, alarm_id: int, unit_ids: Collection[str]) -> set[str]:
        """Reopen the latest closed assignment per unit; return the units reopened."""
        ...

    def deactivate_assignments(self, alarm_id: int, unit_ids: Collection[str]) -> None: ...

    def deactivate_all_assignments(self, alarm_id: int) -> bool: ...

    def list_known_unit_ids(self) -> set[str]: ...


__all__ = ["AlarmStore", "PersistenceError"]
