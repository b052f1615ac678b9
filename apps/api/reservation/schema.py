# apps/api/reservation/schema.py

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Union
from uuid import UUID

from pydantic import Field

from apps.api.reservation.models import Reservation
from apps.api.reservation.token import encode_scan_code
from core.response.models import CustomBaseModel


# ===== Requests =====

class UnitReservationRequest(CustomBaseModel):
    vehicle_id: UUID


class PoolReservationRequest(CustomBaseModel):
    vehicle_id: UUID
    slot_label: Optional[str] = Field(None, max_length=120, description="Specific slot, if any")


class GuestReservationRequest(CustomBaseModel):
    first_name: str = Field(..., min_length=1, max_length=60)
    last_name: str = Field(..., min_length=1, max_length=60)
    plate_number: str = Field(..., min_length=1, max_length=20)
    slot_label: Optional[str] = Field(None, max_length=120)
    vehicle_type: Optional[str] = Field(None, max_length=30)
    brand: Optional[str] = Field(None, max_length=50)
    color: Optional[str] = Field(None, max_length=30)


class ScanRequest(CustomBaseModel):
    scan_code: Union[Dict[str, Any], str] = Field(
        ..., description='Scanned payload, e.g. {"sessionToken": "..."}'
    )


# ===== Responses =====

class ReservationResponse(CustomBaseModel):
    id: int
    requester_id: UUID
    vehicle_id: UUID
    allocation_kind: str
    unit_id: Optional[UUID] = None
    pool_id: Optional[UUID] = None
    slot_label: Optional[str] = None
    status: str
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    waiting_end_at: Optional[datetime] = None
    assisted_by: Optional[UUID] = None
    wait_hours: Optional[Decimal] = None
    parking_hours: Optional[Decimal] = None
    charged_hours: Optional[Decimal] = None
    penalty_hours: Optional[Decimal] = None


class AllocationResponse(CustomBaseModel):
    reservation_id: int
    session_token: str
    scan_code: str
    status: str
    allocation_kind: str
    unit_id: Optional[UUID] = None
    pool_id: Optional[UUID] = None
    slot_label: Optional[str] = None

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> "AllocationResponse":
        return cls(
            reservation_id=reservation.id,
            session_token=reservation.session_token,
            scan_code=encode_scan_code(reservation.session_token),
            status=reservation.status,
            allocation_kind=reservation.allocation_kind,
            unit_id=reservation.unit_id,
            pool_id=reservation.pool_id,
            slot_label=reservation.slot_label,
        )


class BillingBreakdown(CustomBaseModel):
    wait_hours: Decimal
    parking_hours: Decimal
    total_charged_hours: Decimal
    deducted_hours: Decimal
    penalty_hours: Decimal
    balance_hours: Decimal


class SessionEndResponse(CustomBaseModel):
    reservation: ReservationResponse
    status_at_scan: str
    billing: BillingBreakdown

    @classmethod
    def from_result(cls, result) -> "SessionEndResponse":
        return cls(
            reservation=ReservationResponse.model_validate(result.reservation),
            status_at_scan=result.status_at_scan,
            billing=BillingBreakdown(
                wait_hours=result.breakdown.wait_hours,
                parking_hours=result.breakdown.parking_hours,
                total_charged_hours=result.breakdown.total_hours,
                deducted_hours=result.charge.deducted_hours,
                penalty_hours=result.charge.penalty_hours,
                balance_hours=result.charge.balance_hours,
            ),
        )
