"""reservation engine schema

Revision ID: 0001_reservation_engine
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import core.db.fields

# revision identifiers, used by Alembic.
revision: str = "0001_reservation_engine"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

HOLDING = sa.text("status IN ('reserved', 'active')")


def _timestamps():
    return [
        sa.Column("created_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=False),
        sa.Column("updated_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("fullname", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=True),
        sa.Column("role", sa.String(length=20), server_default="user", nullable=False),
        sa.Column("is_guest", sa.Boolean(), server_default="0", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("plate_number", sa.String(length=20), nullable=False),
        sa.Column("vehicle_type", sa.String(length=30), nullable=False),
        sa.Column("brand", sa.String(length=50), nullable=True),
        sa.Column("color", sa.String(length=30), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plate_number"),
    )
    op.create_index("ix_vehicles_user_id", "vehicles", ["user_id"])

    op.create_table(
        "units",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("area", sa.String(length=200), server_default="", nullable=False),
        sa.Column("section", sa.String(length=100), nullable=False),
        sa.Column("label", sa.String(length=30), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="available", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("section", "label", name="uq_unit_section_label"),
    )
    op.create_index("ix_units_section", "units", ["section"])
    op.create_index("ix_units_status", "units", ["status"])

    op.create_table(
        "pools",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("area", sa.String(length=200), server_default="", nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("total_capacity", sa.Integer(), nullable=False),
        sa.Column("reserved_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("occupied_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("unavailable_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("status", sa.String(length=20), server_default="available", nullable=False),
        *_timestamps(),
        sa.CheckConstraint("reserved_count >= 0", name="ck_pool_reserved_non_negative"),
        sa.CheckConstraint("occupied_count >= 0", name="ck_pool_occupied_non_negative"),
        sa.CheckConstraint("unavailable_count >= 0", name="ck_pool_unavailable_non_negative"),
        sa.CheckConstraint(
            "reserved_count + occupied_count + unavailable_count <= total_capacity",
            name="ck_pool_within_capacity",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "pool_slot_overrides",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("pool_id", sa.Uuid(), nullable=False),
        sa.Column("slot_label", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("updated_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["pool_id"], ["pools.id"]),
        sa.ForeignKeyConstraint(["updated_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("pool_id", "slot_label", name="uq_pool_slot_override"),
    )
    op.create_index("ix_pool_slot_overrides_pool_id", "pool_slot_overrides", ["pool_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("vehicle_id", sa.Uuid(), nullable=False),
        sa.Column("allocation_kind", sa.String(length=10), nullable=False),
        sa.Column("unit_id", sa.Uuid(), nullable=True),
        sa.Column("pool_id", sa.Uuid(), nullable=True),
        sa.Column("slot_label", sa.String(length=120), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("session_token", sa.String(length=64), nullable=False),
        sa.Column("assisted_by", sa.Uuid(), nullable=True),
        sa.Column("created_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=False),
        sa.Column("started_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=True),
        sa.Column("ended_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=True),
        sa.Column("waiting_end_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=True),
        sa.Column("wait_hours", sa.Numeric(12, 4), nullable=True),
        sa.Column("parking_hours", sa.Numeric(12, 4), nullable=True),
        sa.Column("charged_hours", sa.Numeric(12, 4), nullable=True),
        sa.Column("penalty_hours", sa.Numeric(12, 4), nullable=True),
        sa.CheckConstraint(
            "(allocation_kind = 'unit' AND unit_id IS NOT NULL AND pool_id IS NULL)"
            " OR (allocation_kind = 'pool' AND pool_id IS NOT NULL"
            " AND slot_label IS NOT NULL AND unit_id IS NULL)",
            name="ck_reservation_allocation_shape",
        ),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["vehicle_id"], ["vehicles.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"]),
        sa.ForeignKeyConstraint(["pool_id"], ["pools.id"]),
        sa.ForeignKeyConstraint(["assisted_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_token"),
    )
    op.create_index("ix_reservations_requester_id", "reservations", ["requester_id"])
    op.create_index("ix_reservation_status_created", "reservations", ["status", "created_at"])
    op.create_index(
        "uq_reservation_holding_unit",
        "reservations",
        ["unit_id"],
        unique=True,
        postgresql_where=HOLDING,
        sqlite_where=HOLDING,
    )
    op.create_index(
        "uq_reservation_holding_pool_slot",
        "reservations",
        ["pool_id", "slot_label"],
        unique=True,
        postgresql_where=HOLDING,
        sqlite_where=HOLDING,
    )
    op.create_index(
        "uq_reservation_holding_requester",
        "reservations",
        ["requester_id"],
        unique=True,
        postgresql_where=HOLDING,
        sqlite_where=HOLDING,
    )
    op.create_index(
        "uq_reservation_holding_vehicle",
        "reservations",
        ["vehicle_id"],
        unique=True,
        postgresql_where=HOLDING,
        sqlite_where=HOLDING,
    )

    op.create_table(
        "balance_grants",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("hours_granted", sa.Numeric(12, 4), nullable=False),
        sa.Column("hours_remaining", sa.Numeric(12, 4), nullable=False),
        sa.Column("hours_used", sa.Numeric(12, 4), server_default="0", nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=True),
        sa.Column("granted_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("hours_remaining >= 0", name="ck_grant_remaining_non_negative"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_grant_user_status_granted", "balance_grants", ["user_id", "status", "granted_at"]
    )
    op.create_table(
        "penalties",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("reservation_id", sa.Integer(), nullable=True),
        sa.Column("penalty_hours", sa.Numeric(12, 4), nullable=False),
        sa.Column("created_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=False),
        sa.CheckConstraint("penalty_hours > 0", name="ck_penalty_positive"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["reservation_id"], ["reservations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_penalties_user_id", "penalties", ["user_id"])

    op.create_table(
        "scan_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("reservation_id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("scan_type", sa.String(length=20), nullable=False),
        sa.Column("status_at_scan", sa.String(length=20), nullable=False),
        sa.Column("scanned_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scan_events_reservation_id", "scan_events", ["reservation_id"])
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("target_id", sa.String(length=64), nullable=True),
        sa.Column("action_type", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", core.db.fields.TZAwareDateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("activity_logs")
    op.drop_table("scan_events")
    op.drop_table("penalties")
    op.drop_table("balance_grants")
    op.drop_index("uq_reservation_holding_vehicle", table_name="reservations")
    op.drop_index("uq_reservation_holding_requester", table_name="reservations")
    op.drop_index("uq_reservation_holding_pool_slot", table_name="reservations")
    op.drop_index("uq_reservation_holding_unit", table_name="reservations")
    op.drop_table("reservations")
    op.drop_table("pool_slot_overrides")
    op.drop_table("pools")
    op.drop_table("units")
    op.drop_table("vehicles")
    op.drop_table("users")
