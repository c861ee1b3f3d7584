"""Alarm and unit-assignment records (pure, dependency-light)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Final

UNKNOWN_ADDRESS: Final[str] = "Unknown Address"
UNKNOWN_CALL_TYPE: Final[str] = "Unknown"


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, kw_only=True)
class Alarm:
    """A dispatched incident keyed by the board's ``dcid``.

    ``ai_notes`` is written once, after creation, by the enrichment worker and is
    never recomputed when the raw ``call_notes`` change later on.
    """

    id: int
    dcid: str
    address: str
    call_type: str
    received_at: str
    last_updated: datetime
    call_notes: str | None = None
    ai_notes: str | None = None
    call_timeline: str | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class AlarmSnapshot:
    """Freshly observed alarm fields. ``None`` means "not observed this cycle"."""

    address: str | None = None
    call_type: str | None = None
    call_notes: str | None = None
    call_timeline: str | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class NewAlarm:
    dcid: str
    address: str
    call_type: str
    received_at: str
    last_updated: datetime
    call_notes: str | None = None
    call_timeline: str | None = None


@dataclass(slots=True, kw_only=True)
class AlarmUpdate:
    """Partial write against an existing alarm; unset fields are left alone."""

    last_updated: datetime
    address: str | None = None
    call_type: str | None = None
    call_notes: str | None = None
    call_timeline: str | None = None
    ai_notes: str | None = None

    def values(self) -> dict[str, object]:
        candidates: dict[str, object | None] = {
            "address": self.address,
            "call_type": self.call_type,
            "call_notes": self.call_notes,
            "call_timeline": self.call_timeline,
            "ai_notes": self.ai_notes,
        }
        values: dict[str, object] = {
            name: value for name, value in candidates.items() if value is not None
        }
        values["last_updated"] = self.last_updated
        return values


@dataclass(slots=True, frozen=True)
class ActiveAlarm:
    """An alarm that currently holds at least one active unit assignment."""

    id: int
    dcid: str
    unit_ids: frozenset[str] = field(default_factory=frozenset[str])


@dataclass(slots=True, kw_only=True)
class UnitAssignment:
    id: int
    alarm_id: int
    unit_id: str
    assigned_at: datetime
    deassigned_at: datetime | None = None
    is_external: bool = False

    @property
    def is_active(self) -> bool:
        return self.deassigned_at is None


@dataclass(slots=True, frozen=True)
class AlarmDetail:
    """Notes and timeline scraped from an alarm's detail page."""

    notes: str | None = None
    timeline: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.notes is None and self.timeline is None


@dataclass(slots=True, frozen=True, kw_only=True)
class CapturedAlarm:
    """Fields extracted from one board element, defaults already applied."""

    dcid: str
    address: str
    call_type: str
    received_at: str
    unit_ids: tuple[str, ...] = ()

    def snapshot(self, detail: AlarmDetail) -> AlarmSnapshot:
        # sentinels stand in for "not observed" and must not overwrite known values
        return AlarmSnapshot(
            address=None if self.address == UNKNOWN_ADDRESS else self.address,
            call_type=None if self.call_type == UNKNOWN_CALL_TYPE else self.call_type,
            call_notes=detail.notes,
            call_timeline=detail.timeline,
        )

    def new_alarm(self, detail: AlarmDetail, *, now: datetime) -> NewAlarm:
        return NewAlarm(
            dcid=self.dcid,
            address=self.address,
            call_type=self.call_type,
            received_at=self.received_at,
            call_notes=detail.notes,
            call_timeline=detail.timeline,
            last_updated=now,
        )
