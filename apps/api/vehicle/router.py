# apps/api/vehicle/router.py

from typing import List
from uuid import UUID

from fastapi import APIRouter

from apps.api.auth.dependency import UserDependency
from apps.api.vehicle.schema import VehicleCreate, VehicleResponse
from apps.api.vehicle.service import VehicleServiceDependency

router = APIRouter(
    prefix="/vehicles",
    tags=["Vehicle"],
)


@router.post("", description="Register a vehicle")
async def create_vehicle(
    data: VehicleCreate,
    user: UserDependency,
    vehicle_service: VehicleServiceDependency,
) -> VehicleResponse:
    """
    The plate is stored without spaces or punctuation, upper cased.

    **Errors:** `INVALID_PLATE_NUMBER`, `PLATE_EXISTS`
    """
    vehicle = await vehicle_service.create_vehicle(
        user.id,
        data.plate_number,
        data.vehicle_type,
        brand=data.brand,
        color=data.color,
    )
    return VehicleResponse.model_validate(vehicle)


@router.get("", description="List your vehicles")
async def list_vehicles(
    user: UserDependency,
    vehicle_service: VehicleServiceDependency,
) -> List[VehicleResponse]:
    vehicles = await vehicle_service.list_vehicles(user.id)
    return [VehicleResponse.model_validate(v) for v in vehicles]


@router.delete("/{vehicle_id}", description="Remove a vehicle")
async def delete_vehicle(
    vehicle_id: UUID,
    user: UserDependency,
    vehicle_service: VehicleServiceDependency,
) -> dict:
    await vehicle_service.delete_vehicle(user.id, vehicle_id)
    return {"message": "Vehicle deleted successfully"}
