# apps/api/capacity/router.py

from uuid import UUID

from fastapi import APIRouter

from apps.api.auth.dependency import OperatorDependency, UserDependency
from apps.api.capacity.schema import (
    PoolAvailability,
    PoolCreate,
    PoolStatusUpdate,
    SectionUnits,
    SlotOverrideResponse,
    SlotStatusUpdate,
    UnitCreate,
    UnitResponse,
)
from apps.api.capacity.service import CapacityServiceDependency

router = APIRouter(
    prefix="/capacity",
    tags=["Capacity"],
)


# ===== Availability =====

@router.get("/pools/{pool_id}", description="Live availability of a pooled section")
async def get_pool_availability(
    pool_id: UUID,
    user: UserDependency,
    capacity_service: CapacityServiceDependency,
) -> PoolAvailability:
    return await capacity_service.get_pool_availability(pool_id)


@router.get("/sections/{section}/units", description="Numbered spots in a section")
async def list_section_units(
    section: str,
    user: UserDependency,
    capacity_service: CapacityServiceDependency,
) -> SectionUnits:
    return await capacity_service.list_section_units(section)


# ===== Operator =====

@router.post("/pools", description="Provision a pooled section (Operator)")
async def create_pool(
    data: PoolCreate,
    operator: OperatorDependency,
    capacity_service: CapacityServiceDependency,
) -> PoolAvailability:
    pool = await capacity_service.create_pool(data)
    return await capacity_service.get_pool_availability(pool.id)


@router.post("/units", description="Provision a numbered spot (Operator)")
async def create_unit(
    data: UnitCreate,
    operator: OperatorDependency,
    capacity_service: CapacityServiceDependency,
) -> UnitResponse:
    unit = await capacity_service.create_unit(data)
    return UnitResponse.model_validate(unit)


@router.put("/pools/{pool_id}/status", description="Open, close or put a section in maintenance (Operator)")
async def set_pool_status(
    pool_id: UUID,
    data: PoolStatusUpdate,
    operator: OperatorDependency,
    capacity_service: CapacityServiceDependency,
) -> PoolAvailability:
    await capacity_service.set_pool_status(pool_id, data.status, actor_id=operator.id)
    return await capacity_service.get_pool_availability(pool_id)


@router.put(
    "/pools/{pool_id}/slots/{slot_label}/status",
    description="Take a single slot out of service or restore it (Operator)",
)
async def set_slot_status(
    pool_id: UUID,
    slot_label: str,
    data: SlotStatusUpdate,
    operator: OperatorDependency,
    capacity_service: CapacityServiceDependency,
) -> SlotOverrideResponse:
    return await capacity_service.set_slot_status(
        pool_id, slot_label, data.status, actor_id=operator.id
    )
