# apps/api/capacity/service.py

import logging
from typing import Annotated, Optional
from uuid import UUID

from sqlalchemy import delete, select

from apps.api.capacity.cache import pool_key, section_key
from apps.api.capacity.effects import ChangeSet, publish_changes
from apps.api.capacity.models import (
    Pool,
    PoolSlotOverride,
    PoolStatus,
    SlotOverrideStatus,
    Unit,
    UnitStatus,
)
from apps.api.capacity.schema import (
    PoolAvailability,
    PoolCreate,
    SectionUnits,
    SlotOverrideResponse,
    UnitCreate,
    UnitResponse,
)
from apps.api.capacity.store import CapacityStore
from apps.api.reservation.exceptions import PoolFull, SlotAlreadyTaken
from apps.api.reservation.models import HOLDING_STATUSES, Reservation
from core.architecture.service import AbstractService
from core.exceptions.database import NotFoundException
from core.exceptions.request import InvalidRequestException

logger = logging.getLogger(__name__)


class CapacityService(AbstractService):
    """
    Provisioning, availability views and operator status overrides.

    Availability views go through the context's :class:`AvailabilityCache`;
    every mutation here publishes its :class:`ChangeSet` after commit, which
    drops the stale entries.
    """

    def __init__(self, session, context):
        super().__init__(session, context)
        self.store = CapacityStore(session)

    async def _get_pool(self, pool_id: UUID) -> Pool:
        pool = await self.session.get(Pool, pool_id)
        if not pool:
            raise NotFoundException("Parking section not found", error_code="POOL_NOT_FOUND")
        return pool

    # ===== Provisioning =====

    async def create_pool(self, data: PoolCreate) -> Pool:
        existing = await self.session.scalar(select(Pool).where(Pool.name == data.name))
        if existing:
            raise InvalidRequestException(
                f"Section {data.name} already exists", error_code="POOL_EXISTS"
            )
        pool = Pool(
            name=data.name,
            area=data.area,
            category=data.category,
            total_capacity=data.total_capacity,
        )
        self.session.add(pool)
        await self.session.commit()
        logger.info(f"Provisioned pool {pool.name} ({pool.total_capacity} {pool.category} slots)")
        return pool

    async def create_unit(self, data: UnitCreate) -> Unit:
        existing = await self.session.scalar(
            select(Unit).where(Unit.section == data.section, Unit.label == data.label)
        )
        if existing:
            raise InvalidRequestException(
                f"Spot {data.section}-{data.label} already exists", error_code="UNIT_EXISTS"
            )
        unit = Unit(
            section=data.section,
            area=data.area,
            label=data.label,
            category=data.category,
            status=UnitStatus.AVAILABLE.value,
        )
        self.session.add(unit)
        await self.session.commit()
        self.context.cache.invalidate(section_key(unit.section))
        logger.info(f"Provisioned unit {unit.display_label} ({unit.category})")
        return unit

    # ===== Availability (cached) =====

    async def get_pool_availability(self, pool_id: UUID) -> PoolAvailability:
        key = pool_key(pool_id)
        cached = self.context.cache.get(key)
        if cached is not None:
            return cached
        generation = self.context.cache.generation(key)
        pool = await self._get_pool(pool_id)
        await self.session.refresh(pool)
        view = PoolAvailability(
            id=pool.id,
            name=pool.name,
            area=pool.area,
            category=pool.category,
            status=pool.status,
            total_capacity=pool.total_capacity,
            reserved_count=pool.reserved_count,
            occupied_count=pool.occupied_count,
            unavailable_count=pool.unavailable_count,
            available=max(0, pool.available) if pool.status == PoolStatus.AVAILABLE.value else 0,
        )
        self.context.cache.set(key, view, generation=generation)
        return view

    async def list_section_units(self, section: str) -> SectionUnits:
        key = section_key(section)
        cached = self.context.cache.get(key)
        if cached is not None:
            return cached
        generation = self.context.cache.generation(key)
        units = (
            await self.session.scalars(
                select(Unit)
                .where(Unit.section == section)
                .order_by(Unit.label)
                .execution_options(populate_existing=True)
            )
        ).all()
        if not units:
            raise NotFoundException("No spots in this section", error_code="SECTION_NOT_FOUND")
        view = SectionUnits(
            section=section,
            total=len(units),
            available=sum(1 for u in units if u.status == UnitStatus.AVAILABLE.value),
            units=[UnitResponse.model_validate(u) for u in units],
        )
        self.context.cache.set(key, view, generation=generation)
        return view

    # ===== Operator overrides =====

    async def set_pool_status(self, pool_id: UUID, status: PoolStatus, actor_id: Optional[UUID] = None) -> Pool:
        pool = await self._get_pool(pool_id)
        previous = pool.status
        pool.status = status.value
        await self.session.commit()

        changes = ChangeSet()
        changes.touch_pool(pool.id)
        publish_changes(self.context, changes)
        logger.info(f"Pool {pool.name} status {previous} -> {status.value} by {actor_id}")
        await self.context.audit.log_activity(
            "POOL_STATUS_CHANGED",
            f"Section {pool.name} set to {status.value}",
            user_id=actor_id,
            target_id=pool.id,
            created_at=self.now(),
        )
        return pool

    async def set_slot_status(
        self,
        pool_id: UUID,
        slot_label: str,
        status: Optional[SlotOverrideStatus],
        actor_id: Optional[UUID] = None,
    ) -> SlotOverrideResponse:
        """
        Take one pool slot out of service (or put it back). The override rows
        and ``unavailable_count`` change together, and a slot currently held
        by a reservation cannot be taken offline.
        """
        pool = await self._get_pool(pool_id)
        label = slot_label.strip()
        if not label:
            raise InvalidRequestException("Slot label cannot be empty", error_code="INVALID_SLOT_LABEL")

        try:
            override = await self.session.scalar(
                select(PoolSlotOverride).where(
                    PoolSlotOverride.pool_id == pool.id,
                    PoolSlotOverride.slot_label == label,
                )
            )
            if status is None:
                if override is not None:
                    await self.session.execute(
                        delete(PoolSlotOverride).where(PoolSlotOverride.id == override.id)
                    )
                    await self.store.bring_pool_slot_online(pool.id)
            elif override is not None:
                override.status = status.value
                override.updated_by = actor_id
            else:
                # counter first: the pool row lock serializes this with label picking
                if not await self.store.take_pool_slot_offline(pool.id):
                    raise PoolFull("Every slot in this section is in use.")
                held = await self.session.scalar(
                    select(Reservation.id).where(
                        Reservation.pool_id == pool.id,
                        Reservation.slot_label == label,
                        Reservation.status.in_(HOLDING_STATUSES),
                    )
                )
                if held is not None:
                    raise SlotAlreadyTaken(label)
                self.session.add(
                    PoolSlotOverride(
                        pool_id=pool.id,
                        slot_label=label,
                        status=status.value,
                        updated_by=actor_id,
                    )
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(pool)
        changes = ChangeSet()
        changes.touch_pool(pool.id)
        publish_changes(self.context, changes)
        logger.info(
            f"Slot {label} in pool {pool.name} set to {status.value if status else 'in service'} by {actor_id}"
        )
        return SlotOverrideResponse(
            pool_id=pool.id,
            slot_label=label,
            status=status.value if status else None,
            unavailable_count=pool.unavailable_count,
        )


CapacityServiceDependency = Annotated[CapacityService, CapacityService.get_dependency()]
