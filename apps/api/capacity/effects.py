# apps/api/capacity/effects.py

"""
Post-commit side effects of capacity changing operations.

Allocation, lifecycle transitions, the sweeper and operator status changes
all collect what they touched into a :class:`ChangeSet` while the
transaction is open and hand it to :func:`publish_changes` once the commit
has succeeded. That single routine drops the affected availability cache
entries and queues the realtime events, so no caller can forget one of them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set
from uuid import UUID

from apps.api.capacity.cache import pool_key, section_key, unit_key

logger = logging.getLogger(__name__)

RESERVATION_UPDATED = "reservation:updated"
CAPACITY_UPDATED = "capacity:updated"
SPOTS_UPDATED = "spots:updated"


@dataclass
class ChangeSet:
    pools: Set[UUID] = field(default_factory=set)
    units: Dict[UUID, str] = field(default_factory=dict)
    reservations: List[Dict[str, Any]] = field(default_factory=list)

    def touch_pool(self, pool_id: UUID) -> None:
        self.pools.add(pool_id)

    def touch_unit(self, unit_id: UUID, section: str) -> None:
        self.units[unit_id] = section

    def record_reservation(
        self,
        reservation_id: int,
        action: str,
        status: str,
        requester_id: Optional[UUID] = None,
    ) -> None:
        self.reservations.append(
            {
                "reservation_id": reservation_id,
                "action": action,
                "status": status,
                "requester_id": str(requester_id) if requester_id else None,
            }
        )

    def merge(self, other: "ChangeSet") -> "ChangeSet":
        self.pools |= other.pools
        self.units.update(other.units)
        self.reservations.extend(other.reservations)
        return self

    def __bool__(self) -> bool:
        return bool(self.pools or self.units or self.reservations)


def publish_changes(context, changes: ChangeSet) -> None:
    """Invalidate cached views and queue events. Call only after commit."""
    if not changes:
        return

    keys = [pool_key(pool_id) for pool_id in changes.pools]
    for unit_id, section in changes.units.items():
        keys.append(unit_key(unit_id))
        keys.append(section_key(section))
    context.cache.invalidate(*keys)

    for payload in changes.reservations:
        context.events.publish(RESERVATION_UPDATED, payload)
    for pool_id in changes.pools:
        context.events.publish(CAPACITY_UPDATED, {"pool_id": str(pool_id)})
    for unit_id, section in changes.units.items():
        context.events.publish(
            SPOTS_UPDATED, {"unit_id": str(unit_id), "section": section}
        )
    logger.debug(
        f"Published changes: {len(changes.reservations)} reservations, "
        f"{len(changes.pools)} pools, {len(changes.units)} units"
    )
