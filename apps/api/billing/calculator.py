# apps/api/billing/calculator.py

"""
Pure arithmetic for session charges. No database access here.

All hour values are ``Decimal`` quantized to four places so that the split
stored on a reservation adds up to the charged total exactly.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

HOURS_QUANTUM = Decimal("0.0001")
ZERO = Decimal("0")
SECONDS_PER_HOUR = Decimal(3600)


def to_hours(value) -> Decimal:
    """Quantize anything numeric to the hour precision used in the ledger."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def minimum_charge(minutes: int) -> Decimal:
    # one minute is 0.0167 h, the floor the booth has always charged
    return to_hours(Decimal(minutes) / Decimal(60))


def hours_between(start: datetime, end: datetime) -> Decimal:
    seconds = Decimal(str((end - start).total_seconds()))
    return to_hours(seconds / SECONDS_PER_HOUR)


@dataclass(frozen=True)
class ChargeBreakdown:
    wait_hours: Decimal
    parking_hours: Decimal
    total_hours: Decimal


@dataclass(frozen=True)
class DeductionPlan:
    deducted_hours: Decimal
    penalty_hours: Decimal


def compute_breakdown(
    created_at: datetime,
    started_at: Optional[datetime],
    ended_at: datetime,
    min_charge_minutes: int = 1,
) -> ChargeBreakdown:
    """
    Split a session into waiting and parking time.

    ``wait + parking == total`` always holds: whatever the raw split misses
    (minimum charge top-up, rounding, clock skew) goes to parking when the
    car actually parked, otherwise to waiting.
    """
    total = max(minimum_charge(min_charge_minutes), hours_between(created_at, ended_at))

    wait = parking = ZERO
    if started_at is not None:
        wait = max(ZERO, hours_between(created_at, started_at))
        parking = max(ZERO, hours_between(started_at, ended_at))

    difference = total - (wait + parking)
    if difference:
        if parking > ZERO:
            parking = max(ZERO, parking + difference)
        else:
            wait = max(ZERO, wait + difference)
        # overshoot larger than parking alone spills back into wait
        if wait + parking != total:
            wait = total - parking

    return ChargeBreakdown(
        wait_hours=to_hours(wait),
        parking_hours=to_hours(parking),
        total_hours=to_hours(total),
    )


def plan_deduction(total_hours: Decimal, remaining_hours: Decimal) -> DeductionPlan:
    remaining = max(ZERO, to_hours(remaining_hours))
    deducted = min(to_hours(total_hours), remaining)
    penalty = to_hours(total_hours) - deducted
    return DeductionPlan(deducted_hours=deducted, penalty_hours=penalty)
