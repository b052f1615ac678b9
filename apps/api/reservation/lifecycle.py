# apps/api/reservation/lifecycle.py

"""
Reservation state machine.

A transition is one guarded ``UPDATE reservations SET status = :to WHERE
id = :id AND status = :from`` followed, in the same transaction, by the
capacity effect of that transition. When the guarded update matches nothing,
some other actor already moved the reservation and no capacity is touched.

Nothing here commits; callers own the transaction and hand the returned
:class:`ChangeSet` to ``publish_changes`` after their commit.
"""

import enum
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from apps.api.capacity.effects import ChangeSet
from apps.api.capacity.models import Unit, UnitStatus
from apps.api.capacity.store import CapacityStore
from apps.api.reservation.allocation import PoolAllocation, UnitAllocation, allocation_of
from apps.api.reservation.exceptions import ReservationStateConflict
from apps.api.reservation.models import AllocationKind, Reservation, ReservationStatus

logger = logging.getLogger(__name__)


class LifecycleEvent(str, enum.Enum):
    START = "start"
    CANCEL = "cancel"
    END = "end"
    EXPIRE = "expire"


RESERVED = ReservationStatus.RESERVED
ACTIVE = ReservationStatus.ACTIVE

TRANSITIONS: Dict[Tuple[ReservationStatus, LifecycleEvent], ReservationStatus] = {
    (RESERVED, LifecycleEvent.START): ACTIVE,
    (RESERVED, LifecycleEvent.CANCEL): ReservationStatus.CANCELLED,
    (RESERVED, LifecycleEvent.END): ReservationStatus.COMPLETED,
    (ACTIVE, LifecycleEvent.END): ReservationStatus.COMPLETED,
    (RESERVED, LifecycleEvent.EXPIRE): ReservationStatus.INVALID,
}

CapacityEffect = Callable[[CapacityStore, object], Awaitable[None]]


async def _unit_reserved_to_occupied(store: CapacityStore, allocation: UnitAllocation):
    await store.move_unit(allocation.unit_id, UnitStatus.RESERVED, UnitStatus.OCCUPIED)


async def _unit_reserved_to_available(store: CapacityStore, allocation: UnitAllocation):
    await store.move_unit(allocation.unit_id, UnitStatus.RESERVED, UnitStatus.AVAILABLE)


async def _unit_occupied_to_available(store: CapacityStore, allocation: UnitAllocation):
    await store.move_unit(allocation.unit_id, UnitStatus.OCCUPIED, UnitStatus.AVAILABLE)


async def _pool_promote(store: CapacityStore, allocation: PoolAllocation):
    await store.promote_pool_slot(allocation.pool_id)


async def _pool_release_reserved(store: CapacityStore, allocation: PoolAllocation):
    await store.release_pool_slot(allocation.pool_id, "reserved")


async def _pool_release_occupied(store: CapacityStore, allocation: PoolAllocation):
    await store.release_pool_slot(allocation.pool_id, "occupied")


UNIT, POOL = AllocationKind.UNIT, AllocationKind.POOL
COMPLETED = ReservationStatus.COMPLETED
CANCELLED = ReservationStatus.CANCELLED
INVALID = ReservationStatus.INVALID

# a reservation ended before it ever started still holds a *reserved* slot,
# so that is the counter it gives back
CAPACITY_EFFECTS: Dict[Tuple[AllocationKind, ReservationStatus, ReservationStatus], CapacityEffect] = {
    (UNIT, RESERVED, ACTIVE): _unit_reserved_to_occupied,
    (UNIT, RESERVED, CANCELLED): _unit_reserved_to_available,
    (UNIT, RESERVED, INVALID): _unit_reserved_to_available,
    (UNIT, RESERVED, COMPLETED): _unit_reserved_to_available,
    (UNIT, ACTIVE, COMPLETED): _unit_occupied_to_available,
    (POOL, RESERVED, ACTIVE): _pool_promote,
    (POOL, RESERVED, CANCELLED): _pool_release_reserved,
    (POOL, RESERVED, INVALID): _pool_release_reserved,
    (POOL, RESERVED, COMPLETED): _pool_release_reserved,
    (POOL, ACTIVE, COMPLETED): _pool_release_occupied,
}


class ReservationLifecycle:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = CapacityStore(session)

    async def transition(
        self,
        reservation: Reservation,
        event: LifecycleEvent,
        values: Optional[dict] = None,
        guards: tuple = (),
        action: Optional[str] = None,
    ) -> ChangeSet:
        from_status = ReservationStatus(reservation.status)
        to_status = TRANSITIONS.get((from_status, event))
        if to_status is None:
            raise ReservationStateConflict(reservation.id, _expected_for(event))

        values = dict(values or {})
        result = await self.session.execute(
            update(Reservation)
            .where(
                Reservation.id == reservation.id,
                Reservation.status == from_status.value,
                *guards,
            )
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                f"Reservation {reservation.id} {event.value} lost the race "
                f"(expected '{from_status.value}')"
            )
            raise ReservationStateConflict(reservation.id, from_status.value)

        allocation = allocation_of(reservation)
        kind = AllocationKind(reservation.allocation_kind)
        effect = CAPACITY_EFFECTS[(kind, from_status, to_status)]
        await effect(self.store, allocation)

        set_committed_value(reservation, "status", to_status.value)
        for key, value in values.items():
            set_committed_value(reservation, key, value)

        changes = ChangeSet()
        if isinstance(allocation, UnitAllocation):
            unit = await self.session.get(Unit, allocation.unit_id)
            changes.touch_unit(allocation.unit_id, unit.section if unit else "")
        else:
            changes.touch_pool(allocation.pool_id)
        changes.record_reservation(
            reservation.id, action or event.value, to_status.value, reservation.requester_id
        )
        logger.info(
            f"Reservation {reservation.id}: {from_status.value} -> {to_status.value} ({event.value})"
        )
        return changes

    # ===== Named transitions =====

    async def activate(self, reservation: Reservation, at: datetime) -> ChangeSet:
        return await self.transition(
            reservation,
            LifecycleEvent.START,
            values={"started_at": at},
            guards=(Reservation.started_at.is_(None),),
        )

    async def cancel(self, reservation: Reservation, at: datetime) -> ChangeSet:
        return await self.transition(
            reservation, LifecycleEvent.CANCEL, values={"ended_at": at}
        )

    async def complete(
        self, reservation: Reservation, at: datetime, billing: Optional[dict] = None
    ) -> ChangeSet:
        """reserved|active -> completed; a never started reservation gets started_at = at."""
        values = {"ended_at": at}
        if reservation.started_at is None:
            values["started_at"] = at
        values.update(billing or {})
        return await self.transition(reservation, LifecycleEvent.END, values=values)

    async def invalidate(self, reservation: Reservation, at: datetime) -> ChangeSet:
        return await self.transition(
            reservation,
            LifecycleEvent.EXPIRE,
            values={"waiting_end_at": at},
            guards=(Reservation.started_at.is_(None),),
        )


def _expected_for(event: LifecycleEvent) -> str:
    sources = sorted({src.value for (src, ev) in TRANSITIONS if ev == event})
    return " or ".join(sources)
