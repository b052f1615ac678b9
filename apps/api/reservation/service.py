# apps/api/reservation/service.py

import logging
from typing import Annotated, Optional, Set
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from apps.api.billing.service import BillingService
from apps.api.capacity.categories import categories_match, normalize_category
from apps.api.capacity.effects import ChangeSet, publish_changes
from apps.api.capacity.exceptions import CapacityInvariantViolation
from apps.api.capacity.models import Pool, PoolSlotOverride, PoolStatus, Unit
from apps.api.capacity.store import CapacityStore
from apps.api.reservation.allocation import Allocation, PoolAllocation, UnitAllocation
from apps.api.reservation.exceptions import (
    ActiveSessionExists,
    CategoryMismatch,
    PoolFull,
    SlotAlreadyTaken,
    UnitAlreadyBooked,
)
from apps.api.reservation.lifecycle import ReservationLifecycle
from apps.api.reservation.models import HOLDING_STATUSES, Reservation, ReservationStatus
from apps.api.reservation.token import new_session_token
from apps.api.user.models import User
from apps.api.vehicle.service import VehicleService
from core.architecture.service import AbstractService
from core.exceptions.authentication import ForbiddenException
from core.exceptions.database import NotFoundException
from core.exceptions.request import InvalidRequestException

logger = logging.getLogger(__name__)


class ReservationService(AbstractService):
    """
    Allocation of units and pool slots, plus the holder/operator actions on an
    existing reservation.

    Whether there is room is decided exclusively by the guarded updates in
    :class:`CapacityStore`; the reads done here only produce friendly errors
    (unknown unit, wrong category) and never gate the write.
    """

    def __init__(self, session, context):
        super().__init__(session, context)
        self.store = CapacityStore(session)
        self.lifecycle = ReservationLifecycle(session)
        self.billing = BillingService(session, context)
        self.vehicles = VehicleService(session, context)

    # ===== Helper Methods =====

    async def _get_user(self, user_id: UUID) -> User:
        user = await self.session.get(User, user_id)
        if not user:
            raise NotFoundException("User not found", error_code="USER_NOT_FOUND")
        return user

    async def _get_pool(self, pool_id: UUID) -> Pool:
        pool = await self.session.get(Pool, pool_id)
        if not pool:
            raise NotFoundException("Parking section not found", error_code="POOL_NOT_FOUND")
        return pool

    async def get_reservation(self, reservation_id: int) -> Reservation:
        reservation = await self.session.get(Reservation, reservation_id)
        if not reservation:
            raise NotFoundException("Reservation not found", error_code="RESERVATION_NOT_FOUND")
        return reservation

    async def get_for_actor(self, reservation_id: int, actor: User) -> Reservation:
        reservation = await self.get_reservation(reservation_id)
        if reservation.requester_id != actor.id and not actor.is_operator:
            raise ForbiddenException("You can only view your own reservations")
        return reservation

    async def _ensure_not_holding(self, requester_id: Optional[UUID], vehicle_id: UUID) -> None:
        """One holding reservation per requester and per vehicle."""
        conditions = [Reservation.vehicle_id == vehicle_id]
        if requester_id is not None:
            conditions.append(Reservation.requester_id == requester_id)
        held = await self.session.scalar(
            select(Reservation.id)
            .where(or_(*conditions), Reservation.status.in_(HOLDING_STATUSES))
            .limit(1)
        )
        if held is not None:
            logger.info(
                f"Requester {requester_id} / vehicle {vehicle_id} already holds reservation {held}"
            )
            raise ActiveSessionExists()

    async def _held_and_blocked_labels(self, pool_id: UUID) -> Set[str]:
        held = await self.session.scalars(
            select(Reservation.slot_label).where(
                Reservation.pool_id == pool_id,
                Reservation.status.in_(HOLDING_STATUSES),
            )
        )
        blocked = await self.session.scalars(
            select(PoolSlotOverride.slot_label).where(PoolSlotOverride.pool_id == pool_id)
        )
        return set(held.all()) | set(blocked.all())

    async def _pick_slot_label(self, pool: Pool, requested: Optional[str]) -> str:
        """
        Runs after the pool counter was incremented, i.e. while holding the
        pool row, so two allocations in the same pool never pick concurrently.
        """
        taken = await self._held_and_blocked_labels(pool.id)
        if requested is not None:
            label = requested.strip()
            if not label:
                raise InvalidRequestException("Slot label cannot be empty", error_code="INVALID_SLOT_LABEL")
            if label in taken:
                raise SlotAlreadyTaken(label)
            return label

        for index in range(1, pool.total_capacity + 1):
            label = f"{pool.name}-{index}"
            if label not in taken:
                return label
        logger.error(
            f"Pool {pool.id} counter admitted an allocation but all {pool.total_capacity} labels are taken"
        )
        raise CapacityInvariantViolation(f"No free slot label in pool {pool.id}")

    async def _persist(
        self,
        allocation: Allocation,
        changes: ChangeSet,
        **fields,
    ) -> Reservation:
        reservation = Reservation(
            session_token=new_session_token(),
            created_at=fields.pop("created_at", None) or self.now(),
            **allocation.columns(),
            **fields,
        )
        self.session.add(reservation)
        try:
            await self.session.flush()
        except IntegrityError as e:
            translated = self._translate_integrity_error(e, allocation)
            if translated is None:
                raise
            raise translated from e

        await self.session.commit()
        changes.record_reservation(
            reservation.id, "created", reservation.status, reservation.requester_id
        )
        publish_changes(self.context, changes)
        return reservation

    @staticmethod
    def _translate_integrity_error(error: IntegrityError, allocation: Allocation):
        detail = str(error.orig)
        if "uq_reservation_holding_unit" in detail or "reservations.unit_id" in detail:
            return UnitAlreadyBooked()
        if "uq_reservation_holding_pool_slot" in detail or "reservations.slot_label" in detail:
            return SlotAlreadyTaken(getattr(allocation, "slot_label", ""))
        if (
            "uq_reservation_holding_requester" in detail
            or "uq_reservation_holding_vehicle" in detail
            or "reservations.requester_id" in detail
            or "reservations.vehicle_id" in detail
        ):
            return ActiveSessionExists()
        return None

    # ===== Allocation =====

    async def allocate_unit(
        self, requester_id: UUID, vehicle_id: UUID, unit_id: UUID
    ) -> Reservation:
        await self.billing.check_eligibility(requester_id)
        vehicle = await self.vehicles.get_owned_vehicle(requester_id, vehicle_id)
        await self._ensure_not_holding(requester_id, vehicle.id)
        unit = await self.session.get(Unit, unit_id)
        if not unit:
            raise NotFoundException("Parking spot not found", error_code="UNIT_NOT_FOUND")
        if not categories_match(vehicle.vehicle_type, unit.category):
            raise CategoryMismatch(
                normalize_category(vehicle.vehicle_type) or "vehicle", unit.category
            )

        try:
            if not await self.store.claim_unit(unit.id):
                logger.info(f"Unit {unit.id} already claimed, rejecting request from {requester_id}")
                raise UnitAlreadyBooked()
            changes = ChangeSet()
            changes.touch_unit(unit.id, unit.section)
            reservation = await self._persist(
                UnitAllocation(unit_id=unit.id),
                changes,
                requester_id=requester_id,
                vehicle_id=vehicle.id,
                status=ReservationStatus.RESERVED.value,
            )
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Reservation {reservation.id} holds unit {unit.display_label} for {requester_id}")
        return reservation

    async def allocate_pool(
        self,
        requester_id: UUID,
        vehicle_id: UUID,
        pool_id: UUID,
        slot_label: Optional[str] = None,
    ) -> Reservation:
        await self.billing.check_eligibility(requester_id)
        vehicle = await self.vehicles.get_owned_vehicle(requester_id, vehicle_id)
        await self._ensure_not_holding(requester_id, vehicle.id)
        pool = await self._get_pool(pool_id)
        if not categories_match(vehicle.vehicle_type, pool.category):
            raise CategoryMismatch(
                normalize_category(vehicle.vehicle_type) or "vehicle", pool.category
            )
        if pool.status != PoolStatus.AVAILABLE.value:
            raise PoolFull(f"Section {pool.name} is currently {pool.status}.")

        try:
            if not await self.store.reserve_pool_slot(pool.id):
                logger.info(f"Pool {pool.name} full, rejecting request from {requester_id}")
                raise PoolFull()
            label = await self._pick_slot_label(pool, slot_label)
            changes = ChangeSet()
            changes.touch_pool(pool.id)
            reservation = await self._persist(
                PoolAllocation(pool_id=pool.id, slot_label=label),
                changes,
                requester_id=requester_id,
                vehicle_id=vehicle.id,
                status=ReservationStatus.RESERVED.value,
            )
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"Reservation {reservation.id} holds {label} for {requester_id}")
        return reservation

    async def allocate_guest(
        self,
        attendant_id: UUID,
        pool_id: UUID,
        first_name: str,
        last_name: str,
        plate_number: str,
        slot_label: Optional[str] = None,
        vehicle_type: Optional[str] = None,
        brand: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Reservation:
        """
        Attendant-assisted walk-in: the car is already at the spot, so the
        reservation starts out active and occupies the slot directly.
        """
        attendant = await self._get_user(attendant_id)
        if not attendant.is_operator:
            raise ForbiddenException("Only attendants can register guests", error_code="NOT_AN_ATTENDANT")
        pool = await self._get_pool(pool_id)
        if pool.status != PoolStatus.AVAILABLE.value:
            raise PoolFull(f"Section {pool.name} is currently {pool.status}.")
        # a plate already on file keeps its registered type
        known = await self.vehicles.get_by_plate(plate_number)
        if known is not None:
            vehicle_type = known.vehicle_type
            await self._ensure_not_holding(None, known.id)
        vehicle_type = vehicle_type or pool.category
        if not categories_match(vehicle_type, pool.category):
            raise CategoryMismatch(normalize_category(vehicle_type) or "vehicle", pool.category)

        try:
            if not await self.store.occupy_pool_slot(pool.id):
                raise PoolFull()
            label = await self._pick_slot_label(pool, slot_label)
            guest_id = await self.context.identity.create_ephemeral_identity(
                self.session, first_name, last_name
            )
            vehicle = await self.vehicles.find_or_create_guest_vehicle(
                guest_id, plate_number, vehicle_type, brand=brand, color=color
            )
            now = self.now()
            changes = ChangeSet()
            changes.touch_pool(pool.id)
            reservation = await self._persist(
                PoolAllocation(pool_id=pool.id, slot_label=label),
                changes,
                requester_id=guest_id,
                vehicle_id=vehicle.id,
                status=ReservationStatus.ACTIVE.value,
                created_at=now,
                started_at=now,
                assisted_by=attendant.id,
            )
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Attendant {attendant.id} parked guest {guest_id} at {label} (reservation {reservation.id})"
        )
        await self.context.audit.log_activity(
            "GUEST_ASSIGNED",
            f"Guest {first_name} {last_name} assigned to {label}",
            user_id=attendant.id,
            target_id=reservation.id,
            created_at=now,
        )
        return reservation

    # ===== Holder / operator actions =====

    async def cancel_reservation(self, reservation_id: int, actor_id: UUID) -> Reservation:
        actor = await self._get_user(actor_id)
        reservation = await self.get_reservation(reservation_id)
        if reservation.requester_id != actor.id and not actor.is_operator:
            raise ForbiddenException("You can only cancel your own reservations")

        now = self.now()
        try:
            changes = await self.lifecycle.cancel(reservation, now)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        publish_changes(self.context, changes)

        await self.context.audit.log_activity(
            "RESERVATION_CANCELLED",
            f"Reservation {reservation.id} cancelled",
            user_id=actor.id,
            target_id=reservation.id,
            created_at=now,
        )
        return reservation

    async def end_reservation(self, reservation_id: int, actor_id: UUID):
        """Operator end by reservation id; same path as an end scan."""
        from apps.api.reservation.validator import SessionValidator

        actor = await self._get_user(actor_id)
        if not actor.is_operator:
            raise ForbiddenException("Only attendants can end a reservation by id")
        reservation = await self.get_reservation(reservation_id)
        validator = SessionValidator(self.session, self.context)
        return await validator.end_reservation(reservation, actor_id=actor.id)


ReservationServiceDependency = Annotated[ReservationService, ReservationService.get_dependency()]
