"""Ports for capturing alarms from the dispatch board."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from alarmwatch.domain.model import AlarmDetail


class ElementExtractionError(RuntimeError):
    """Raised by board elements that can no longer be queried (e.g. detached)."""


@runtime_checkable
class RawAlarmElement(Protocol):
    """One alarm entry as rendered by the board, queried with CSS selectors."""

    def extract_field(self, selector: str, *, attribute: str | None = None) -> str | None: ...

    def extract_all(self, selector: str) -> list[str]: ...

    async def fetch_detail(self, dcid: str) -> AlarmDetail:
        """Load notes and timeline for ``dcid``; callers treat any error as an empty detail."""
        ...


@runtime_checkable
class DispatchBoardSource(Protocol):
    """Source of the alarms currently listed on the board."""

    async def list_active_elements(self) -> Sequence[RawAlarmElement]: ...


__all__ = ["DispatchBoardSource", "ElementExtractionError", "RawAlarmElement"]
