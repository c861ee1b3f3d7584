"""SQLAlchemy adapter package for alarmwatch."""

from __future__ import annotations

from .session import (
    StartupError,
    configured_engine,
    is_started,
    session_factory,
    shutdown,
    startup,
)
from .store import SqlAlchemyAlarmStore
from .tables import alarm_table, metadata, unit_assignment_table, unit_table

__all__ = [
    "SqlAlchemyAlarmStore",
    "StartupError",
    "alarm_table",
    "configured_engine",
    "is_started",
    "metadata",
    "session_factory",
    "shutdown",
    "startup",
    "unit_assignment_table",
    "unit_table",
]
