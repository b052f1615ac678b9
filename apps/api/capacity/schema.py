# apps/api/capacity/schema.py

from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from apps.api.capacity.categories import normalize_category
from apps.api.capacity.models import PoolStatus, SlotOverrideStatus
from core.response.models import CustomBaseModel


# ===== Pool =====

class PoolCreate(CustomBaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    area: str = Field("", max_length=200)
    category: str = Field(..., description="car, motorcycle or bicycle (synonyms accepted)")
    total_capacity: int = Field(..., ge=1, le=10000)

    @field_validator("category")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_category(value)


class PoolAvailability(CustomBaseModel):
    id: UUID
    name: str
    area: str
    category: str
    status: str
    total_capacity: int
    reserved_count: int
    occupied_count: int
    unavailable_count: int
    available: int


class PoolStatusUpdate(CustomBaseModel):
    status: PoolStatus


class SlotStatusUpdate(CustomBaseModel):
    status: Optional[SlotOverrideStatus] = Field(
        None, description="unavailable or maintenance; null puts the slot back in service"
    )


class SlotOverrideResponse(CustomBaseModel):
    pool_id: UUID
    slot_label: str
    status: Optional[str] = None
    unavailable_count: int


# ===== Units =====

class UnitCreate(CustomBaseModel):
    section: str = Field(..., min_length=1, max_length=100)
    area: str = Field("", max_length=200)
    label: str = Field(..., min_length=1, max_length=30)
    category: str

    @field_validator("category")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_category(value)


class UnitResponse(CustomBaseModel):
    id: UUID
    section: str
    area: str
    label: str
    category: str
    status: str


class SectionUnits(CustomBaseModel):
    section: str
    total: int
    available: int
    units: List[UnitResponse]
