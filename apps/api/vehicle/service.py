# apps/api/vehicle/service.py
import logging
import re
from typing import Annotated, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from apps.api.reservation.models import HOLDING_STATUSES, Reservation
from apps.api.vehicle.models import Vehicle
from core.architecture.service import AbstractService
from core.exceptions.base import AppException
from core.exceptions.request import InvalidRequestException

logger = logging.getLogger(__name__)


def normalize_plate(plate_number: str) -> str:
    plate = re.sub(r"[^a-zA-Z0-9]", "", plate_number or "").upper()
    if not plate:
        raise InvalidRequestException(
            "Plate number is required", error_code="INVALID_PLATE_NUMBER"
        )
    return plate


class VehicleService(AbstractService):
    async def create_vehicle(
        self,
        user_id: UUID,
        plate_number: str,
        vehicle_type: str,
        brand: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Vehicle:
        """
        Register a vehicle to ``user_id``.

        Raises:
            InvalidRequestException: plate is empty after normalization
            AppException (PLATE_EXISTS, 409): plate already registered
        """
        plate = normalize_plate(plate_number)
        if await self.get_by_plate(plate) is not None:
            raise AppException(
                f"Vehicle {plate} is already registered",
                error_code="PLATE_EXISTS",
                status_code=409,
            )

        vehicle = Vehicle(
            user_id=user_id,
            plate_number=plate,
            vehicle_type=vehicle_type,
            brand=brand,
            color=color,
        )
        self.session.add(vehicle)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise AppException(
                f"Vehicle {plate} is already registered",
                error_code="PLATE_EXISTS",
                status_code=409,
            )
        await self.session.refresh(vehicle)
        logger.info(f"User {user_id} registered vehicle {vehicle.id} ({plate})")
        return vehicle

    async def list_vehicles(self, user_id: UUID) -> List[Vehicle]:
        result = await self.session.scalars(
            select(Vehicle)
            .where(Vehicle.user_id == user_id)
            .order_by(Vehicle.created_at, Vehicle.plate_number)
        )
        return list(result.all())

    async def delete_vehicle(self, user_id: UUID, vehicle_id: UUID) -> None:
        """
        Remove a vehicle the user owns. Vehicles that appear on any
        reservation stay, since reservations and billing refer to them.
        """
        vehicle = await self.get_owned_vehicle(user_id, vehicle_id)

        holding = await self.session.scalar(
            select(Reservation.id)
            .where(
                Reservation.vehicle_id == vehicle.id,
                Reservation.status.in_(HOLDING_STATUSES),
            )
            .limit(1)
        )
        if holding is not None:
            raise AppException(
                "Vehicle has a reservation or parking session in progress",
                error_code="VEHICLE_IN_USE",
                status_code=409,
            )

        history = await self.session.scalar(
            select(Reservation.id).where(Reservation.vehicle_id == vehicle.id).limit(1)
        )
        if history is not None:
            raise AppException(
                "Vehicle has past reservations and cannot be removed",
                error_code="VEHICLE_HAS_HISTORY",
                status_code=409,
            )

        await self.session.delete(vehicle)
        await self.session.commit()
        logger.info(f"User {user_id} removed vehicle {vehicle_id}")

    async def get_owned_vehicle(self, user_id: UUID, vehicle_id: UUID) -> Vehicle:
        """Vehicle by id, only if it belongs to ``user_id``."""
        vehicle = await self.session.get(Vehicle, vehicle_id)
        if not vehicle or vehicle.user_id != user_id:
            raise InvalidRequestException(
                "Vehicle not found or does not belong to you",
                error_code="VEHICLE_NOT_FOUND",
            )
        return vehicle

    async def get_by_plate(self, plate_number: str) -> Optional[Vehicle]:
        return await self.session.scalar(
            select(Vehicle).where(Vehicle.plate_number == normalize_plate(plate_number))
        )

    async def find_or_create_guest_vehicle(
        self,
        owner_id: UUID,
        plate_number: str,
        vehicle_type: str,
        brand: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Vehicle:
        """
        Reuse a vehicle already registered under this plate, otherwise register
        it to the guest identity. Added to the caller's transaction.
        """
        plate = normalize_plate(plate_number)
        vehicle = await self.get_by_plate(plate)
        if vehicle:
            logger.info(f"Reusing vehicle {vehicle.id} for plate {plate}")
            return vehicle

        vehicle = Vehicle(
            user_id=owner_id,
            plate_number=plate,
            vehicle_type=vehicle_type,
            brand=brand,
            color=color,
        )
        self.session.add(vehicle)
        await self.session.flush()
        logger.info(f"Registered guest vehicle {vehicle.id} ({plate})")
        return vehicle


VehicleServiceDependency = Annotated[VehicleService, VehicleService.get_dependency()]
