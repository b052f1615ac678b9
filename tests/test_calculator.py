"""Tests for the pure session charge arithmetic."""

from datetime import timedelta
from decimal import Decimal

import pytest

from apps.api.billing.calculator import (
    compute_breakdown,
    hours_between,
    minimum_charge,
    plan_deduction,
    to_hours,
)
from tests.conftest import T0


class TestComputeBreakdown:
    def test_started_session_splits_wait_and_parking(self):
        breakdown = compute_breakdown(T0, T0 + timedelta(minutes=30), T0 + timedelta(minutes=120))

        assert breakdown.wait_hours == Decimal("0.5000")
        assert breakdown.parking_hours == Decimal("1.5000")
        assert breakdown.total_hours == Decimal("2.0000")

    def test_ninety_minutes_is_one_and_a_half_hours(self):
        breakdown = compute_breakdown(T0, T0, T0 + timedelta(minutes=90))

        assert breakdown.total_hours == Decimal("1.5")
        assert breakdown.wait_hours == Decimal("0")
        assert breakdown.parking_hours == Decimal("1.5")

    def test_minimum_charge_applies_to_instant_sessions(self):
        breakdown = compute_breakdown(T0, T0, T0)

        assert breakdown.total_hours == Decimal("0.0167")
        assert breakdown.wait_hours + breakdown.parking_hours == breakdown.total_hours

    def test_floor_top_up_goes_to_wait_when_never_parked(self):
        breakdown = compute_breakdown(T0, None, T0 + timedelta(seconds=10))

        assert breakdown.total_hours == Decimal("0.0167")
        assert breakdown.parking_hours == Decimal("0")
        assert breakdown.wait_hours == Decimal("0.0167")

    def test_floor_top_up_goes_to_parking_when_parked(self):
        breakdown = compute_breakdown(T0, T0, T0 + timedelta(seconds=30))

        assert breakdown.total_hours == Decimal("0.0167")
        assert breakdown.parking_hours == Decimal("0.0167")
        assert breakdown.wait_hours == Decimal("0")

    def test_start_before_creation_is_clamped(self):
        breakdown = compute_breakdown(
            T0, T0 - timedelta(minutes=5), T0 + timedelta(minutes=60)
        )

        assert breakdown.wait_hours == Decimal("0")
        assert breakdown.total_hours == Decimal("1.0000")
        assert breakdown.parking_hours == Decimal("1.0000")

    @pytest.mark.parametrize(
        "wait_seconds,park_seconds",
        [(0, 1), (7, 13), (61, 3599), (1234, 4321), (3600 * 5 + 17, 3600 * 3 + 41)],
    )
    def test_split_always_adds_up_to_total(self, wait_seconds, park_seconds):
        started = T0 + timedelta(seconds=wait_seconds)
        ended = started + timedelta(seconds=park_seconds)

        breakdown = compute_breakdown(T0, started, ended)

        assert breakdown.wait_hours + breakdown.parking_hours == breakdown.total_hours
        assert breakdown.wait_hours >= 0
        assert breakdown.parking_hours >= 0

    def test_configurable_minimum(self):
        breakdown = compute_breakdown(T0, T0, T0, min_charge_minutes=15)

        assert breakdown.total_hours == Decimal("0.2500")


class TestPlanDeduction:
    def test_balance_covers_charge(self):
        plan = plan_deduction(Decimal("1.5"), Decimal("4"))

        assert plan.deducted_hours == Decimal("1.5")
        assert plan.penalty_hours == Decimal("0")

    def test_shortfall_becomes_penalty(self):
        plan = plan_deduction(Decimal("1.5"), Decimal("1"))

        assert plan.deducted_hours == Decimal("1.0000")
        assert plan.penalty_hours == Decimal("0.5000")

    def test_no_balance_means_full_penalty(self):
        plan = plan_deduction(Decimal("0.75"), Decimal("0"))

        assert plan.deducted_hours == Decimal("0")
        assert plan.penalty_hours == Decimal("0.75")


def test_helpers_quantize_to_four_places():
    assert to_hours(1 / 3) == Decimal("0.3333")
    assert minimum_charge(1) == Decimal("0.0167")
    assert hours_between(T0, T0 + timedelta(minutes=20)) == Decimal("0.3333")
