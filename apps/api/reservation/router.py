# apps/api/reservation/router.py

from uuid import UUID

from fastapi import APIRouter

from apps.api.auth.dependency import OperatorDependency, UserDependency
from apps.api.reservation.schema import (
    AllocationResponse,
    GuestReservationRequest,
    PoolReservationRequest,
    ReservationResponse,
    ScanRequest,
    SessionEndResponse,
    UnitReservationRequest,
)
from apps.api.reservation.service import ReservationServiceDependency
from apps.api.reservation.validator import SessionValidatorDependency

router = APIRouter(
    prefix="/reservations",
    tags=["Reservations"],
)

session_router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"],
)


# ===== Allocation =====

@router.post("/units/{unit_id}", description="Reserve a numbered spot")
async def reserve_unit(
    unit_id: UUID,
    data: UnitReservationRequest,
    user: UserDependency,
    reservation_service: ReservationServiceDependency,
) -> AllocationResponse:
    reservation = await reservation_service.allocate_unit(user.id, data.vehicle_id, unit_id)
    return AllocationResponse.from_reservation(reservation)


@router.post("/pools/{pool_id}", description="Reserve a slot in a pooled section")
async def reserve_pool_slot(
    pool_id: UUID,
    data: PoolReservationRequest,
    user: UserDependency,
    reservation_service: ReservationServiceDependency,
) -> AllocationResponse:
    """
    Reserve any free slot of the section, or the slot named in ``slot_label``.

    **Errors:** `POOL_FULL`, `SLOT_ALREADY_TAKEN`, `CATEGORY_MISMATCH`,
    `INSUFFICIENT_BALANCE`, `OUTSTANDING_PENALTY`
    """
    reservation = await reservation_service.allocate_pool(
        user.id, data.vehicle_id, pool_id, slot_label=data.slot_label
    )
    return AllocationResponse.from_reservation(reservation)


@router.post("/pools/{pool_id}/guest", description="Park a walk-in guest (Attendant)")
async def reserve_guest_slot(
    pool_id: UUID,
    data: GuestReservationRequest,
    operator: OperatorDependency,
    reservation_service: ReservationServiceDependency,
) -> AllocationResponse:
    reservation = await reservation_service.allocate_guest(
        operator.id,
        pool_id,
        first_name=data.first_name,
        last_name=data.last_name,
        plate_number=data.plate_number,
        slot_label=data.slot_label,
        vehicle_type=data.vehicle_type,
        brand=data.brand,
        color=data.color,
    )
    return AllocationResponse.from_reservation(reservation)


# ===== Reservation actions =====

@router.get("/{reservation_id}", description="Reservation summary")
async def get_reservation(
    reservation_id: int,
    user: UserDependency,
    reservation_service: ReservationServiceDependency,
) -> ReservationResponse:
    reservation = await reservation_service.get_for_actor(reservation_id, user)
    return ReservationResponse.model_validate(reservation)


@router.post("/{reservation_id}/cancel", description="Cancel a reservation that has not started")
async def cancel_reservation(
    reservation_id: int,
    user: UserDependency,
    reservation_service: ReservationServiceDependency,
) -> ReservationResponse:
    reservation = await reservation_service.cancel_reservation(reservation_id, user.id)
    return ReservationResponse.model_validate(reservation)


@router.post("/{reservation_id}/end", description="End a reservation by id (Attendant)")
async def end_reservation(
    reservation_id: int,
    operator: OperatorDependency,
    reservation_service: ReservationServiceDependency,
) -> SessionEndResponse:
    result = await reservation_service.end_reservation(reservation_id, operator.id)
    return SessionEndResponse.from_result(result)


# ===== Scans =====

@session_router.post("/start", description="Start a parking session from a scanned code (Attendant)")
async def start_session(
    data: ScanRequest,
    operator: OperatorDependency,
    validator: SessionValidatorDependency,
) -> ReservationResponse:
    reservation = await validator.start_session(data.scan_code, actor_id=operator.id)
    return ReservationResponse.model_validate(reservation)


@session_router.post("/end", description="End a parking session from a scanned code (Attendant)")
async def end_session(
    data: ScanRequest,
    operator: OperatorDependency,
    validator: SessionValidatorDependency,
) -> SessionEndResponse:
    result = await validator.end_session(data.scan_code, actor_id=operator.id)
    return SessionEndResponse.from_result(result)
