# apps/api/reservation/models.py

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from core.db.base import AbstractSQLModel
from core.db.fields import TZAwareDateTime
from core.db.mixins import utcnow


class ReservationStatus(str, enum.Enum):
    RESERVED = "reserved"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INVALID = "invalid"


HOLDING_STATUSES = (ReservationStatus.RESERVED.value, ReservationStatus.ACTIVE.value)
TERMINAL_STATUSES = (
    ReservationStatus.COMPLETED.value,
    ReservationStatus.CANCELLED.value,
    ReservationStatus.INVALID.value,
)


class AllocationKind(str, enum.Enum):
    UNIT = "unit"
    POOL = "pool"


_HOLDING = text("status IN ('reserved', 'active')")


class Reservation(AbstractSQLModel):
    """
    One requester's claim on a unit or a pool slot.

    The allocation kind is fixed at creation: unit reservations carry
    ``unit_id``, pool reservations carry ``pool_id`` + ``slot_label``. The two
    partial unique indexes back up the guarded capacity updates: a second
    holding reservation for the same unit or pool slot cannot be written, and
    a requester or vehicle holds at most one reservation at a time.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint(
            "(allocation_kind = 'unit' AND unit_id IS NOT NULL AND pool_id IS NULL)"
            " OR (allocation_kind = 'pool' AND pool_id IS NOT NULL"
            " AND slot_label IS NOT NULL AND unit_id IS NULL)",
            name="ck_reservation_allocation_shape",
        ),
        Index(
            "uq_reservation_holding_unit",
            "unit_id",
            unique=True,
            postgresql_where=_HOLDING,
            sqlite_where=_HOLDING,
        ),
        Index(
            "uq_reservation_holding_pool_slot",
            "pool_id",
            "slot_label",
            unique=True,
            postgresql_where=_HOLDING,
            sqlite_where=_HOLDING,
        ),
        Index(
            "uq_reservation_holding_requester",
            "requester_id",
            unique=True,
            postgresql_where=_HOLDING,
            sqlite_where=_HOLDING,
        ),
        Index(
            "uq_reservation_holding_vehicle",
            "vehicle_id",
            unique=True,
            postgresql_where=_HOLDING,
            sqlite_where=_HOLDING,
        ),
        Index("ix_reservation_status_created", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    requester_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id = Column(Uuid(as_uuid=True), ForeignKey("vehicles.id"), nullable=False)

    allocation_kind = Column(String(10), nullable=False)
    unit_id = Column(Uuid(as_uuid=True), ForeignKey("units.id"), nullable=True)
    pool_id = Column(Uuid(as_uuid=True), ForeignKey("pools.id"), nullable=True)
    slot_label = Column(String(120), nullable=True)

    status = Column(String(20), nullable=False, default=ReservationStatus.RESERVED.value)
    session_token = Column(String(64), nullable=False, unique=True)
    assisted_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    created_at = Column(TZAwareDateTime(timezone=True), nullable=False, default=utcnow)
    started_at = Column(TZAwareDateTime(timezone=True), nullable=True)
    ended_at = Column(TZAwareDateTime(timezone=True), nullable=True)
    # grace deadline marker, only written when the sweeper invalidates
    waiting_end_at = Column(TZAwareDateTime(timezone=True), nullable=True)

    # billing snapshot written on completion
    wait_hours = Column(Numeric(12, 4), nullable=True)
    parking_hours = Column(Numeric(12, 4), nullable=True)
    charged_hours = Column(Numeric(12, 4), nullable=True)
    penalty_hours = Column(Numeric(12, 4), nullable=True)

    requester = relationship("User", foreign_keys=[requester_id])
    vehicle = relationship("Vehicle")
    unit = relationship("Unit")
    pool = relationship("Pool")
