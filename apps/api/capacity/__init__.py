# apps/api/capacity/__init__.py

# ONLY import models here (needed for registry)
from .models import (
    Unit,
    Pool,
    PoolSlotOverride,
    VehicleCategory,
    UnitStatus,
    PoolStatus,
    SlotOverrideStatus,
)

__all__ = [
    "Unit",
    "Pool",
    "PoolSlotOverride",
    "VehicleCategory",
    "UnitStatus",
    "PoolStatus",
    "SlotOverrideStatus",
]

# DO NOT import router here - it will be imported directly by your app loader
