"""Known-unit registry used to flag external units at assignment time."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from .ports.persistence import PersistenceError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

log = getLogger(__name__)


class KnownUnitRegistry:
    """Snapshot of the unit identifiers the department recognises.

    Loaded once on first use and kept for the life of the process; call
    :meth:`refresh` to pick up registry edits without restarting.
    """

    def __init__(self, loader: Callable[[], set[str]]) -> None:
        self._loader = loader
        self._unit_ids: frozenset[str] | None = None

    @property
    def loaded(self) -> bool:
        return self._unit_ids is not None

    def refresh(self) -> frozenset[str]:
        try:
            unit_ids = frozenset(self._loader())
        except PersistenceError:
            # not cached, so the next lookup tries the store again
            log.exception("Failed to load known units; treating every unit as external")
            return frozenset()
        self._unit_ids = unit_ids
        log.info("Loaded %d known units", len(unit_ids))
        return unit_ids

    def unit_ids(self) -> frozenset[str]:
        if self._unit_ids is None:
            return self.refresh()
        return self._unit_ids

    def is_external(self, unit_id: str) -> bool:
        return unit_id not in self.unit_ids()

    def external_units(self, unit_ids: Iterable[str]) -> set[str]:
        known = self.unit_ids()
        return {unit_id for unit_id in unit_ids if unit_id not in known}
