"""SQLAlchemy Core tables for alarms, unit assignments and known units."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    false,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect


class UTCDateTime(TypeDecorator[datetime]):
    """Store aware datetimes in UTC; naive values read back are assumed UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)


alarm_table = Table(
    "alarm",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("dcid", String, nullable=False, unique=True),
    Column("address", String, nullable=False),
    Column("call_type", String, nullable=False),
    Column("received_at", String, nullable=False),
    Column("call_notes", Text, nullable=True),
    Column("ai_notes", Text, nullable=True),
    Column("call_timeline", Text, nullable=True),
    Column("last_updated", UTCDateTime(), nullable=False),
)

unit_assignment_table = Table(
    "unit_assignment",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "alarm_id",
        Integer,
        ForeignKey("alarm.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("unit_id", String, nullable=False),
    Column("assigned_at", UTCDateTime(), nullable=False),
    Column("deassigned_at", UTCDateTime(), nullable=True),
    Column("is_external", Boolean, nullable=False, server_default=false()),
    Index("ix_unit_assignment_alarm_id_unit_id", "alarm_id", "unit_id"),
)

unit_table = Table(
    "unit",
    metadata,
    Column("unit_id", String, primary_key=True),
    Column("added_at", UTCDateTime(), nullable=False),
)
