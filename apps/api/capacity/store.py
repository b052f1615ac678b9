# apps/api/capacity/store.py

"""
Guarded mutations on the capacity rows.

Every statement here is a single ``UPDATE ... WHERE <precondition>``; the
database evaluates the precondition and applies the change atomically, so
correctness never depends on an earlier read. Acquire-style operations report
a lost race by returning ``False``. Release-style operations can only fail if
the stored state is already inconsistent, which is raised as
:class:`CapacityInvariantViolation` and aborts the caller's transaction.
"""

import logging
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.capacity.exceptions import CapacityInvariantViolation
from apps.api.capacity.models import Pool, PoolStatus, Unit, UnitStatus

logger = logging.getLogger(__name__)


class CapacityStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _execute(self, stmt) -> int:
        result = await self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ===== Units =====

    async def claim_unit(self, unit_id: UUID) -> bool:
        """available -> reserved. False when someone else got there first."""
        rows = await self._execute(
            update(Unit)
            .where(Unit.id == unit_id, Unit.status == UnitStatus.AVAILABLE.value)
            .values(status=UnitStatus.RESERVED.value)
        )
        return rows == 1

    async def move_unit(self, unit_id: UUID, from_status: UnitStatus, to_status: UnitStatus) -> None:
        rows = await self._execute(
            update(Unit)
            .where(Unit.id == unit_id, Unit.status == from_status.value)
            .values(status=to_status.value)
        )
        if rows != 1:
            logger.error(
                f"Unit {unit_id} expected in '{from_status.value}' for move to "
                f"'{to_status.value}' but the guarded update matched {rows} rows"
            )
            raise CapacityInvariantViolation(
                f"Unit {unit_id} is not {from_status.value}"
            )

    # ===== Pools =====

    async def reserve_pool_slot(self, pool_id: UUID) -> bool:
        """reserved_count += 1 while capacity remains and the pool is open."""
        return await self._acquire_pool_slot(pool_id, Pool.reserved_count)

    async def occupy_pool_slot(self, pool_id: UUID) -> bool:
        """occupied_count += 1 directly (attendant-assisted arrivals)."""
        return await self._acquire_pool_slot(pool_id, Pool.occupied_count)

    async def _acquire_pool_slot(self, pool_id: UUID, counter) -> bool:
        rows = await self._execute(
            update(Pool)
            .where(
                Pool.id == pool_id,
                Pool.status == PoolStatus.AVAILABLE.value,
                Pool.available_expression() > 0,
            )
            .values({counter.key: counter + 1})
        )
        return rows == 1

    async def promote_pool_slot(self, pool_id: UUID) -> None:
        """reserved -> occupied inside one pool."""
        rows = await self._execute(
            update(Pool)
            .where(Pool.id == pool_id, Pool.reserved_count > 0)
            .values(
                reserved_count=Pool.reserved_count - 1,
                occupied_count=Pool.occupied_count + 1,
            )
        )
        self._check_pool_release(pool_id, rows, "reserved")

    async def release_pool_slot(self, pool_id: UUID, counter_name: str) -> None:
        counter = getattr(Pool, f"{counter_name}_count")
        rows = await self._execute(
            update(Pool)
            .where(Pool.id == pool_id, counter > 0)
            .values({counter.key: counter - 1})
        )
        self._check_pool_release(pool_id, rows, counter_name)

    async def take_pool_slot_offline(self, pool_id: UUID) -> bool:
        """unavailable_count += 1, still bounded by total capacity."""
        rows = await self._execute(
            update(Pool)
            .where(Pool.id == pool_id, Pool.available_expression() > 0)
            .values(unavailable_count=Pool.unavailable_count + 1)
        )
        return rows == 1

    async def bring_pool_slot_online(self, pool_id: UUID) -> None:
        await self.release_pool_slot(pool_id, "unavailable")

    def _check_pool_release(self, pool_id: UUID, rows: int, counter_name: str) -> None:
        if rows != 1:
            logger.error(
                f"Pool {pool_id} {counter_name}_count guard failed ({rows} rows); "
                "counter would go negative"
            )
            raise CapacityInvariantViolation(
                f"Pool {pool_id} has no {counter_name} slot to release"
            )
