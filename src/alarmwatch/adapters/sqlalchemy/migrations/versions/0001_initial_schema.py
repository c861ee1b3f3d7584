"""Initial schema: alarms, unit assignments and known units.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from alembic import op

from alarmwatch.adapters.sqlalchemy.tables import UTCDateTime

if TYPE_CHECKING:
    from collections.abc import Sequence

revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "alarm",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("dcid", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("call_type", sa.String(), nullable=False),
        sa.Column("received_at", sa.String(), nullable=False),
        sa.Column("call_notes", sa.Text(), nullable=True),
        sa.Column("ai_notes", sa.Text(), nullable=True),
        sa.Column("call_timeline", sa.Text(), nullable=True),
        sa.Column("last_updated", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_alarm")),
        sa.UniqueConstraint("dcid", name=op.f("uq_alarm_dcid")),
    )
    op.create_table(
        "unit_assignment",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("alarm_id", sa.Integer(), nullable=False),
        sa.Column("unit_id", sa.String(), nullable=False),
        sa.Column("assigned_at", UTCDateTime(), nullable=False),
        sa.Column("deassigned_at", UTCDateTime(), nullable=True),
        sa.Column("is_external", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.ForeignKeyConstraint(
            ["alarm_id"],
            ["alarm.id"],
            name=op.f("fk_unit_assignment_alarm_id_alarm"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_unit_assignment")),
    )
    op.create_index(
        "ix_unit_assignment_alarm_id_unit_id",
        "unit_assignment",
        ["alarm_id", "unit_id"],
        unique=False,
    )
    op.create_table(
        "unit",
        sa.Column("unit_id", sa.String(), nullable=False),
        sa.Column("added_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("unit_id", name=op.f("pk_unit")),
    )


def downgrade() -> None:
    op.drop_table("unit")
    op.drop_index("ix_unit_assignment_alarm_id_unit_id", table_name="unit_assignment")
    op.drop_table("unit_assignment")
    op.drop_table("alarm")
