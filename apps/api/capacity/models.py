# apps/api/capacity/models.py

import enum
import uuid

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from core.db.base import AbstractSQLModel
from core.db.mixins import TimestampsMixin


# ===== Enums =====

class VehicleCategory(str, enum.Enum):
    """Canonical vehicle categories a unit or pool can serve"""
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    BICYCLE = "bicycle"


class UnitStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    OCCUPIED = "occupied"


class PoolStatus(str, enum.Enum):
    """Administrative status of a pool (set by operators, not by allocation)"""
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    MAINTENANCE = "maintenance"


class SlotOverrideStatus(str, enum.Enum):
    UNAVAILABLE = "unavailable"
    MAINTENANCE = "maintenance"


# ===== Models =====

class Unit(AbstractSQLModel, TimestampsMixin):
    """
    One physical, individually numbered parking spot.
    Status only changes through the allocator and the reservation lifecycle.
    """
    __tablename__ = "units"
    __table_args__ = (
        UniqueConstraint("section", "label", name="uq_unit_section_label"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    area = Column(String(200), nullable=False, default="", server_default="")
    section = Column(String(100), nullable=False, index=True)
    label = Column(String(30), nullable=False, comment="Spot number shown to users")
    category = Column(String(20), nullable=False)
    status = Column(
        String(20),
        nullable=False,
        default=UnitStatus.AVAILABLE.value,
        server_default=UnitStatus.AVAILABLE.value,
        index=True,
    )

    @property
    def display_label(self) -> str:
        return f"{self.section}-{self.label}"


class Pool(AbstractSQLModel, TimestampsMixin):
    """
    A capacity-only section: interchangeable slots sharing one counter set.
    reserved + occupied + unavailable never exceeds total_capacity.
    """
    __tablename__ = "pools"
    __table_args__ = (
        CheckConstraint("reserved_count >= 0", name="ck_pool_reserved_non_negative"),
        CheckConstraint("occupied_count >= 0", name="ck_pool_occupied_non_negative"),
        CheckConstraint("unavailable_count >= 0", name="ck_pool_unavailable_non_negative"),
        CheckConstraint(
            "reserved_count + occupied_count + unavailable_count <= total_capacity",
            name="ck_pool_within_capacity",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    area = Column(String(200), nullable=False, default="", server_default="")
    category = Column(String(20), nullable=False)
    total_capacity = Column(Integer, nullable=False)
    reserved_count = Column(Integer, nullable=False, default=0, server_default="0")
    occupied_count = Column(Integer, nullable=False, default=0, server_default="0")
    unavailable_count = Column(Integer, nullable=False, default=0, server_default="0")
    status = Column(
        String(20),
        nullable=False,
        default=PoolStatus.AVAILABLE.value,
        server_default=PoolStatus.AVAILABLE.value,
    )

    overrides = relationship("PoolSlotOverride", back_populates="pool", cascade="all, delete-orphan")

    @property
    def available(self) -> int:
        return self.total_capacity - self.reserved_count - self.occupied_count - self.unavailable_count

    @classmethod
    def available_expression(cls):
        return cls.total_capacity - cls.reserved_count - cls.occupied_count - cls.unavailable_count


class PoolSlotOverride(AbstractSQLModel, TimestampsMixin):
    """
    Operator override that takes a single pool slot label out of service.
    Pool.unavailable_count mirrors the number of rows per pool.
    """
    __tablename__ = "pool_slot_overrides"
    __table_args__ = (
        UniqueConstraint("pool_id", "slot_label", name="uq_pool_slot_override"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    pool_id = Column(Uuid(as_uuid=True), ForeignKey("pools.id"), nullable=False, index=True)
    slot_label = Column(String(100), nullable=False)
    status = Column(
        String(20),
        nullable=False,
        default=SlotOverrideStatus.UNAVAILABLE.value,
    )
    updated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    pool = relationship("Pool", back_populates="overrides")
