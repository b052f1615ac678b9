# apps/api/reservation/__init__.py

# ONLY import models here (needed for registry)
from .models import Reservation, ReservationStatus, AllocationKind

__all__ = ["Reservation", "ReservationStatus", "AllocationKind"]

# DO NOT import router here - it will be imported directly by your app loader
