"""SQLAlchemy implementation of :class:`~alarmwatch.domain.ports.AlarmStore`."""

from __future__ import annotations

from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import func, insert, select
from sqlalchemy import update as update_stmt
from sqlalchemy.exc import SQLAlchemyError

from alarmwatch.domain.model import ActiveAlarm, Alarm, utcnow
from alarmwatch.domain.ports.persistence import PersistenceError

from .tables import alarm_table, unit_assignment_table, unit_table

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable, Iterator
    from datetime import datetime

    from sqlalchemy.orm import Session, sessionmaker

    from alarmwatch.domain.model import AlarmUpdate, NewAlarm

log = getLogger(__name__)


class SqlAlchemyAlarmStore:
    """One transaction per call; database errors surface as :class:`PersistenceError`."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    # alarms

    def get_active_alarms(self) -> list[ActiveAlarm]:
        stmt = (
            select(alarm_table.c.id, alarm_table.c.dcid, unit_assignment_table.c.unit_id)
            .join(unit_assignment_table, unit_assignment_table.c.alarm_id == alarm_table.c.id)
            .where(unit_assignment_table.c.deassigned_at.is_(None))
            .order_by(alarm_table.c.id)
        )
        with self._transaction("load active alarms") as session:
            rows = session.execute(stmt).all()

        grouped: dict[int, tuple[str, set[str]]] = {}
        for alarm_id, dcid, unit_id in rows:
            grouped.setdefault(alarm_id, (dcid, set()))[1].add(unit_id)
        return [
            ActiveAlarm(id=alarm_id, dcid=dcid, unit_ids=frozenset(units))
            for alarm_id, (dcid, units) in grouped.items()
        ]

    def get_alarm_by_dcid(self, dcid: str) -> Alarm | None:
        stmt = select(alarm_table).where(alarm_table.c.dcid == dcid)
        with self._transaction(f"load alarm {dcid}") as session:
            row = session.execute(stmt).mappings().one_or_none()
        if row is None:
            return None
        return Alarm(**row)

    def create_alarm(self, alarm: NewAlarm) -> int:
        stmt = insert(alarm_table).values(
            dcid=alarm.dcid,
            address=alarm.address,
            call_type=alarm.call_type,
            received_at=alarm.received_at,
            call_notes=alarm.call_notes,
            call_timeline=alarm.call_timeline,
            last_updated=alarm.last_updated,
        )
        with self._transaction(f"create alarm {alarm.dcid}") as session:
            result = session.execute(stmt)
            (alarm_id,) = result.inserted_primary_key or (None,)
        if alarm_id is None:
            raise PersistenceError(f"Failed to create alarm {alarm.dcid}: no id returned")
        return int(alarm_id)

    def update_alarm(self, alarm_id: int, update: AlarmUpdate) -> None:
        stmt = (
            update_stmt(alarm_table)
            .where(alarm_table.c.id == alarm_id)
            .values(**update.values())
        )
        with self._transaction(f"update alarm {alarm_id}") as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                raise PersistenceError(f"Alarm {alarm_id} does not exist")

    # unit assignments

    def get_active_unit_ids(self, alarm_id: int) -> set[str]:
        with self._transaction(f"load active units for alarm {alarm_id}") as session:
            return _active_unit_ids(session, alarm_id)

    def create_assignments(
        self,
        alarm_id: int,
        unit_ids: Collection[str],
        *,
        external_ids: Collection[str] = (),
    ) -> None:
        if not unit_ids:
            return
        now = self._clock()
        external = set(external_ids)
        with self._transaction(f"assign units to alarm {alarm_id}") as session:
            # a unit holds at most one open assignment per alarm
            active = _active_unit_ids(session, alarm_id)
            rows = [
                {
                    "alarm_id": alarm_id,
                    "unit_id": unit_id,
                    "assigned_at": now,
                    "is_external": unit_id in external,
                }
                for unit_id in dict.fromkeys(unit_ids)
                if unit_id not in active
            ]
            if rows:
                session.execute(insert(unit_assignment_table), rows)

    def reactivate_assignments(self, alarm_id: int, unit_ids: Collection[str]) -> set[str]:
        if not unit_ids:
            return set()
        now = self._clock()
        table = unit_assignment_table
        latest_closed = (
            select(table.c.unit_id, func.max(table.c.id).label("assignment_id"))
            .where(
                table.c.alarm_id == alarm_id,
                table.c.unit_id.in_(list(unit_ids)),
                table.c.deassigned_at.is_not(None),
            )
            .group_by(table.c.unit_id)
        )
        with self._transaction(f"reactivate units for alarm {alarm_id}") as session:
            active = _active_unit_ids(session, alarm_id)
            candidates = {
                unit_id: assignment_id
                for unit_id, assignment_id in session.execute(latest_closed).all()
                if unit_id not in active
            }
            if candidates:
                session.execute(
                    update_stmt(table)
                    .where(table.c.id.in_(list(candidates.values())))
                    .values(assigned_at=now, deassigned_at=None)
                )
        return set(candidates)

    def deactivate_assignments(self, alarm_id: int, unit_ids: Collection[str]) -> None:
        if not unit_ids:
            return
        table = unit_assignment_table
        stmt = (
            update_stmt(table)
            .where(
                table.c.alarm_id == alarm_id,
                table.c.unit_id.in_(list(unit_ids)),
                table.c.deassigned_at.is_(None),
            )
            .values(deassigned_at=self._clock())
        )
        with self._transaction(f"deactivate units for alarm {alarm_id}") as session:
            session.execute(stmt)

    def deactivate_all_assignments(self, alarm_id: int) -> bool:
        table = unit_assignment_table
        stmt = (
            update_stmt(table)
            .where(table.c.alarm_id == alarm_id, table.c.deassigned_at.is_(None))
            .values(deassigned_at=self._clock())
        )
        with self._transaction(f"deassign all units from alarm {alarm_id}") as session:
            result = session.execute(stmt)
            log.debug("Closed %d assignments for alarm %s", result.rowcount, alarm_id)
        return True

    # known units

    def list_known_unit_ids(self) -> set[str]:
        with self._transaction("load known units") as session:
            return set(session.execute(select(unit_table.c.unit_id)).scalars())

    def add_known_units(self, unit_ids: Iterable[str]) -> set[str]:
        """Register ``unit_ids``; returns the ones that were not already known."""

        wanted = {unit_id.strip() for unit_id in unit_ids if unit_id.strip()}
        if not wanted:
            return set()
        now = self._clock()
        with self._transaction("register known units") as session:
            existing = set(
                session.execute(
                    select(unit_table.c.unit_id).where(unit_table.c.unit_id.in_(sorted(wanted)))
                ).scalars()
            )
            added = wanted - existing
            if added:
                session.execute(
                    insert(unit_table),
                    [{"unit_id": unit_id, "added_at": now} for unit_id in sorted(added)],
                )
        return added


def _active_unit_ids(session: Session, alarm_id: int) -> set[str]:
    stmt = select(unit_assignment_table.c.unit_id).where(
        unit_assignment_table.c.alarm_id == alarm_id,
        unit_assignment_table.c.deassigned_at.is_(None),
    )
    return set(session.execute(stmt).scalars())
