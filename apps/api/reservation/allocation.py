# apps/api/reservation/allocation.py

from dataclasses import dataclass
from typing import Union
from uuid import UUID

from apps.api.reservation.models import AllocationKind, Reservation


@dataclass(frozen=True)
class UnitAllocation:
    unit_id: UUID

    kind = AllocationKind.UNIT

    def columns(self) -> dict:
        return {"allocation_kind": self.kind.value, "unit_id": self.unit_id}


@dataclass(frozen=True)
class PoolAllocation:
    pool_id: UUID
    slot_label: str

    kind = AllocationKind.POOL

    def columns(self) -> dict:
        return {
            "allocation_kind": self.kind.value,
            "pool_id": self.pool_id,
            "slot_label": self.slot_label,
        }


Allocation = Union[UnitAllocation, PoolAllocation]


def allocation_of(reservation: Reservation) -> Allocation:
    """Rebuild the allocation a reservation was created with."""
    if reservation.allocation_kind == AllocationKind.UNIT.value:
        return UnitAllocation(unit_id=reservation.unit_id)
    if reservation.allocation_kind == AllocationKind.POOL.value:
        return PoolAllocation(pool_id=reservation.pool_id, slot_label=reservation.slot_label)
    raise ValueError(
        f"Reservation {reservation.id} has unknown allocation kind {reservation.allocation_kind!r}"
    )
