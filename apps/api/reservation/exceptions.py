# apps/api/reservation/exceptions.py

from core.exceptions.authentication import ForbiddenException
from core.exceptions.base import AppException
from core.exceptions.database import NotFoundException
from core.exceptions.request import InvalidRequestException


# ===== Eligibility =====

class InsufficientBalance(ForbiddenException):
    default_error_code = "INSUFFICIENT_BALANCE"

    def __init__(self, message: str = "You have no remaining parking hours. Please top up first."):
        super().__init__(message)


class OutstandingPenalty(ForbiddenException):
    default_error_code = "OUTSTANDING_PENALTY"

    def __init__(self, hours=None):
        message = "You have an outstanding penalty. Please settle it before reserving."
        if hours is not None:
            message = f"You have an outstanding penalty of {hours} hours. Please settle it before reserving."
        super().__init__(message)
        self.hours = hours


# ===== Contention =====

class ContentionError(AppException):
    """Expected under concurrency; safe to retry with fresh state."""

    status_code = 409
    default_error_code = "CONFLICT"


class UnitAlreadyBooked(ContentionError):
    default_error_code = "UNIT_ALREADY_BOOKED"

    def __init__(self, message: str = "This spot has already been booked. Please pick another one."):
        super().__init__(message)


class ActiveSessionExists(ContentionError):
    default_error_code = "ACTIVE_SESSION_EXISTS"

    def __init__(
        self,
        message: str = "You already have an active reservation or parking session. End or cancel it first.",
    ):
        super().__init__(message)


class PoolFull(ContentionError):
    default_error_code = "POOL_FULL"

    def __init__(self, message: str = "No capacity left in this section."):
        super().__init__(message)


class SlotAlreadyTaken(ContentionError):
    default_error_code = "SLOT_ALREADY_TAKEN"

    def __init__(self, slot_label: str):
        super().__init__(f"Slot {slot_label} is already taken.")
        self.slot_label = slot_label


class ReservationStateConflict(ContentionError):
    default_error_code = "RESERVATION_STATE_CONFLICT"

    def __init__(self, reservation_id, expected: str):
        super().__init__(
            f"Reservation {reservation_id} is no longer {expected}. Please refresh."
        )
        self.reservation_id = reservation_id
        self.expected = expected


class BalanceConflict(ContentionError):
    default_error_code = "BALANCE_CONFLICT"

    def __init__(self, message: str = "Balance changed while ending the session. Please retry."):
        super().__init__(message)


class TokenNotFound(NotFoundException):
    default_error_code = "TOKEN_NOT_FOUND"

    def __init__(self, message: str = "No reservation is waiting for this code."):
        super().__init__(message)


# ===== Request =====

class CategoryMismatch(InvalidRequestException):
    default_error_code = "CATEGORY_MISMATCH"

    def __init__(self, vehicle_category: str, spot_category: str):
        super().__init__(
            f"A {vehicle_category} cannot be parked in a {spot_category} spot."
        )


class InvalidScanCode(InvalidRequestException):
    default_error_code = "INVALID_SCAN_CODE"
