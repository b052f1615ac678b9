# apps/api/vehicle/schema.py

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from apps.api.capacity.categories import normalize_category
from apps.api.capacity.models import VehicleCategory
from core.response.models import CustomBaseModel


class VehicleCreate(CustomBaseModel):
    plate_number: str = Field(..., min_length=1, max_length=20)
    vehicle_type: str = Field(..., description="car, motorcycle or bicycle (synonyms such as bike accepted)")
    brand: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=30)

    @field_validator("vehicle_type")
    @classmethod
    def validate_vehicle_type(cls, value: str) -> str:
        category = normalize_category(value)
        if category not in {c.value for c in VehicleCategory}:
            raise ValueError(f"Unknown vehicle type '{value}'")
        return category


class VehicleResponse(CustomBaseModel):
    id: UUID
    user_id: UUID
    plate_number: str
    vehicle_type: str
    brand: Optional[str] = None
    color: Optional[str] = None
    created_at: Optional[datetime] = None
