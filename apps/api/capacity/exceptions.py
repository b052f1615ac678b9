# apps/api/capacity/exceptions.py

from core.exceptions.database import IntegrityFault


class CapacityInvariantViolation(IntegrityFault):
    """A guarded capacity mutation found the counters or unit state inconsistent."""

    default_error_code = "CAPACITY_INVARIANT_VIOLATED"
