"""Domain port definitions for adapters."""

from __future__ import annotations

from .capture import DispatchBoardSource, ElementExtractionError, RawAlarmElement
from .enrichment import CompletionService, NotesEnricher
from .persistence import AlarmStore, PersistenceError

__all__ = [
    "AlarmStore",
    "CompletionService",
    "DispatchBoardSource",
    "ElementExtractionError",
    "NotesEnricher",
    "PersistenceError",
    "RawAlarmElement",
]
