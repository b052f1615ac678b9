"""Tests for reservation state transitions and their capacity effects."""

import pytest
from sqlalchemy.exc import IntegrityError

from apps.api.capacity.exceptions import CapacityInvariantViolation
from apps.api.capacity.models import Pool, Unit, UnitStatus
from apps.api.reservation.exceptions import (
    ActiveSessionExists,
    ReservationStateConflict,
    UnitAlreadyBooked,
)
from apps.api.reservation.lifecycle import (
    CAPACITY_EFFECTS,
    TRANSITIONS,
    LifecycleEvent,
    ReservationLifecycle,
)
from apps.api.reservation.models import AllocationKind, Reservation, ReservationStatus
from apps.api.reservation.service import ReservationService
from core.exceptions.authentication import ForbiddenException


async def reserve_unit(context, factory):
    user, vehicle = await factory.driver()
    unit = await factory.unit()
    async with context.db.session() as session:
        reservation = await ReservationService(session, context).allocate_unit(user.id, vehicle.id, unit.id)
    return user, unit, reservation


async def reserve_pool(context, factory, total=5):
    user, vehicle = await factory.driver(vehicle_type="motorcycle")
    pool = await factory.pool(total=total)
    async with context.db.session() as session:
        reservation = await ReservationService(session, context).allocate_pool(user.id, vehicle.id, pool.id)
    return user, pool, reservation


async def load(context, reservation_id):
    async with context.db.session() as session:
        return await session.get(Reservation, reservation_id)


class TestTransitionTable:
    def test_terminal_states_have_no_exits(self):
        for (source, _event) in TRANSITIONS:
            assert source in (ReservationStatus.RESERVED, ReservationStatus.ACTIVE)

    def test_every_transition_has_a_capacity_effect_for_both_kinds(self):
        for (source, _event), target in TRANSITIONS.items():
            for kind in AllocationKind:
                assert (kind, source, target) in CAPACITY_EFFECTS

    def test_expire_only_from_reserved(self):
        sources = {src for (src, ev) in TRANSITIONS if ev == LifecycleEvent.EXPIRE}
        assert sources == {ReservationStatus.RESERVED}


class TestCancel:
    @pytest.mark.asyncio
    async def test_holder_cancels_unit_reservation(self, context, factory, clock):
        user, unit, reservation = await reserve_unit(context, factory)
        clock.advance(minutes=3)

        async with context.db.session() as session:
            cancelled = await ReservationService(session, context).cancel_reservation(reservation.id, user.id)

        assert cancelled.status == ReservationStatus.CANCELLED.value
        assert cancelled.ended_at == clock()
        assert (await factory.reload(Unit, unit.id)).status == UnitStatus.AVAILABLE.value

    @pytest.mark.asyncio
    async def test_cancel_releases_pool_slot(self, context, factory):
        user, pool, reservation = await reserve_pool(context, factory)

        async with context.db.session() as session:
            await ReservationService(session, context).cancel_reservation(reservation.id, user.id)

        assert (await factory.reload(Pool, pool.id)).reserved_count == 0

    @pytest.mark.asyncio
    async def test_operator_may_cancel_for_holder(self, context, factory):
        _, _, reservation = await reserve_unit(context, factory)
        attendant = await factory.operator()

        async with context.db.session() as session:
            cancelled = await ReservationService(session, context).cancel_reservation(reservation.id, attendant.id)

        assert cancelled.status == ReservationStatus.CANCELLED.value

    @pytest.mark.asyncio
    async def test_stranger_may_not_cancel(self, context, factory):
        _, unit, reservation = await reserve_unit(context, factory)
        stranger = await factory.user()

        async with context.db.session() as session:
            with pytest.raises(ForbiddenException):
                await ReservationService(session, context).cancel_reservation(reservation.id, stranger.id)

        assert (await load(context, reservation.id)).status == ReservationStatus.RESERVED.value
        assert (await factory.reload(Unit, unit.id)).status == UnitStatus.RESERVED.value

    @pytest.mark.asyncio
    async def test_second_cancel_conflicts_without_double_release(self, context, factory):
        user, pool, reservation = await reserve_pool(context, factory)
        other, other_vehicle = await factory.driver(vehicle_type="motorcycle")
        async with context.db.session() as session:
            await ReservationService(session, context).allocate_pool(other.id, other_vehicle.id, pool.id)

        async with context.db.session() as session:
            await ReservationService(session, context).cancel_reservation(reservation.id, user.id)
        async with context.db.session() as session:
            with pytest.raises(ReservationStateConflict):
                await ReservationService(session, context).cancel_reservation(reservation.id, user.id)

        # the other reservation still holds its slot
        assert (await factory.reload(Pool, pool.id)).reserved_count == 1


class TestGuardedTransition:
    @pytest.mark.asyncio
    async def test_stale_read_loses_and_touches_no_capacity(self, context, factory, clock):
        _, unit, reservation = await reserve_unit(context, factory)

        async with context.db.session() as first, context.db.session() as second:
            stale_a = await first.get(Reservation, reservation.id)
            stale_b = await second.get(Reservation, reservation.id)

            await ReservationLifecycle(first).activate(stale_a, clock())
            await first.commit()

            with pytest.raises(ReservationStateConflict):
                await ReservationLifecycle(second).activate(stale_b, clock())
            await second.rollback()

        assert (await factory.reload(Unit, unit.id)).status == UnitStatus.OCCUPIED.value
        assert (await load(context, reservation.id)).status == ReservationStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_capacity_guard_failure_is_an_integrity_error(self, context, factory, clock):
        _, pool, reservation = await reserve_pool(context, factory)
        async with context.db.session() as session:
            stored = await session.get(Pool, pool.id)
            stored.reserved_count = 0
            await session.commit()

        async with context.db.session() as session:
            stale = await session.get(Reservation, reservation.id)
            with pytest.raises(CapacityInvariantViolation) as exc_info:
                await ReservationLifecycle(session).cancel(stale, clock())
            await session.rollback()

        assert exc_info.value.status_code == 500
        assert "Something went wrong" in exc_info.value.to_dict()["message"]
        assert (await load(context, reservation.id)).status == ReservationStatus.RESERVED.value

    @pytest.mark.asyncio
    async def test_cancel_of_active_reservation_conflicts(self, context, factory, clock):
        user, _, reservation = await reserve_unit(context, factory)
        async with context.db.session() as session:
            stored = await session.get(Reservation, reservation.id)
            await ReservationLifecycle(session).activate(stored, clock())
            await session.commit()

        async with context.db.session() as session:
            with pytest.raises(ReservationStateConflict):
                await ReservationService(session, context).cancel_reservation(reservation.id, user.id)


class TestHoldingInvariant:
    @pytest.mark.asyncio
    async def test_database_refuses_second_holding_reservation(self, context, factory):
        """The partial unique index backs up the guarded unit update."""
        _, unit, _ = await reserve_unit(context, factory)
        other, other_vehicle = await factory.driver()

        async with context.db.session() as session:
            session.add(
                Reservation(
                    requester_id=other.id,
                    vehicle_id=other_vehicle.id,
                    allocation_kind=AllocationKind.UNIT.value,
                    unit_id=unit.id,
                    status=ReservationStatus.RESERVED.value,
                    session_token="duplicate-holder",
                )
            )
            with pytest.raises(IntegrityError) as exc_info:
                await session.flush()
            await session.rollback()

        assert isinstance(
            ReservationService._translate_integrity_error(exc_info.value, None), UnitAlreadyBooked
        )

    @pytest.mark.asyncio
    async def test_terminal_reservations_do_not_count(self, context, factory, clock):
        user, unit, reservation = await reserve_unit(context, factory)
        async with context.db.session() as session:
            await ReservationService(session, context).cancel_reservation(reservation.id, user.id)

        again = await reserve_unit_for(context, factory, unit)

        assert again.unit_id == unit.id
        assert again.id != reservation.id


async def reserve_unit_for(context, factory, unit):
    user, vehicle = await factory.driver()
    async with context.db.session() as session:
        return await ReservationService(session, context).allocate_unit(user.id, vehicle.id, unit.id)


class TestOneHoldingPerRequesterIndex:
    @pytest.mark.asyncio
    async def test_database_refuses_second_holding_for_requester(self, context, factory):
        user, _, reservation = await reserve_unit(context, factory)
        other_unit = await factory.unit(label="2")

        async with context.db.session() as session:
            session.add(
                Reservation(
                    requester_id=user.id,
                    vehicle_id=reservation.vehicle_id,
                    allocation_kind=AllocationKind.UNIT.value,
                    unit_id=other_unit.id,
                    status=ReservationStatus.RESERVED.value,
                    session_token="second-holding",
                )
            )
            with pytest.raises(IntegrityError) as exc_info:
                await session.flush()
            await session.rollback()

        assert isinstance(
            ReservationService._translate_integrity_error(exc_info.value, None), ActiveSessionExists
        )
