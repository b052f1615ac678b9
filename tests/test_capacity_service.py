"""Tests for provisioning, availability views and operator overrides."""

import uuid

import pytest

from apps.api.capacity.cache import pool_key, section_key
from apps.api.capacity.models import Pool, PoolStatus, SlotOverrideStatus
from apps.api.capacity.schema import PoolCreate, UnitCreate
from apps.api.capacity.service import CapacityService
from apps.api.reservation.exceptions import PoolFull, SlotAlreadyTaken
from apps.api.reservation.service import ReservationService
from core.exceptions.database import NotFoundException
from core.exceptions.request import InvalidRequestException


async def availability(context, pool_id):
    async with context.db.session() as session:
        return await CapacityService(session, context).get_pool_availability(pool_id)


async def set_slot(context, pool_id, label, status):
    async with context.db.session() as session:
        return await CapacityService(session, context).set_slot_status(pool_id, label, status)


async def reserve_pool(context, factory, pool, slot_label=None):
    user, vehicle = await factory.driver(vehicle_type="motorcycle")
    async with context.db.session() as session:
        return await ReservationService(session, context).allocate_pool(
            user.id, vehicle.id, pool.id, slot_label=slot_label
        )


class TestProvisioning:
    @pytest.mark.asyncio
    async def test_create_pool_normalizes_category(self, context):
        async with context.db.session() as session:
            pool = await CapacityService(session, context).create_pool(
                PoolCreate(name="Bikes", category="Motorbike", total_capacity=20)
            )

        assert pool.category == "motorcycle"
        assert pool.reserved_count == 0

    @pytest.mark.asyncio
    async def test_duplicate_pool_name(self, context, factory):
        await factory.pool(name="MC")

        async with context.db.session() as session:
            with pytest.raises(InvalidRequestException) as exc_info:
                await CapacityService(session, context).create_pool(
                    PoolCreate(name="MC", category="motorcycle", total_capacity=3)
                )
        assert exc_info.value.error_code == "POOL_EXISTS"

    @pytest.mark.asyncio
    async def test_duplicate_unit_label_in_section(self, context, factory):
        await factory.unit(section="B", label="7")

        async with context.db.session() as session:
            with pytest.raises(InvalidRequestException) as exc_info:
                await CapacityService(session, context).create_unit(
                    UnitCreate(section="B", label="7", category="car")
                )
        assert exc_info.value.error_code == "UNIT_EXISTS"


class TestAvailabilityViews:
    @pytest.mark.asyncio
    async def test_pool_view_is_cached_and_refreshed_after_allocation(self, context, factory):
        pool = await factory.pool(total=3)

        before = await availability(context, pool.id)
        assert before.available == 3
        assert pool_key(pool.id) in context.cache

        await reserve_pool(context, factory, pool)
        assert pool_key(pool.id) not in context.cache

        after = await availability(context, pool.id)
        assert after.available == 2
        assert after.reserved_count == 1

    @pytest.mark.asyncio
    async def test_closed_pool_reports_nothing_available(self, context, factory):
        pool = await factory.pool(total=3)
        await availability(context, pool.id)

        async with context.db.session() as session:
            await CapacityService(session, context).set_pool_status(pool.id, PoolStatus.MAINTENANCE)

        view = await availability(context, pool.id)
        assert view.status == PoolStatus.MAINTENANCE.value
        assert view.available == 0

    @pytest.mark.asyncio
    async def test_unknown_pool(self, context):
        with pytest.raises(NotFoundException):
            await availability(context, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_section_units(self, context, factory):
        await factory.unit(section="A", label="1")
        await factory.unit(section="A", label="2")

        async with context.db.session() as session:
            view = await CapacityService(session, context).list_section_units("A")

        assert view.total == 2
        assert view.available == 2
        assert [u.label for u in view.units] == ["1", "2"]
        assert section_key("A") in context.cache

    @pytest.mark.asyncio
    async def test_unknown_section(self, context):
        async with context.db.session() as session:
            with pytest.raises(NotFoundException) as exc_info:
                await CapacityService(session, context).list_section_units("Z")
        assert exc_info.value.error_code == "SECTION_NOT_FOUND"


class TestSlotOverrides:
    @pytest.mark.asyncio
    async def test_offline_slot_reduces_capacity(self, context, factory):
        pool = await factory.pool(total=2)

        result = await set_slot(context, pool.id, "MC-1", SlotOverrideStatus.MAINTENANCE)

        assert result.unavailable_count == 1
        assert (await availability(context, pool.id)).available == 1

        reservation = await reserve_pool(context, factory, pool)
        assert reservation.slot_label == "MC-2"
        with pytest.raises(PoolFull):
            await reserve_pool(context, factory, pool)

    @pytest.mark.asyncio
    async def test_restoring_a_slot_frees_capacity(self, context, factory):
        pool = await factory.pool(total=2)
        await set_slot(context, pool.id, "MC-1", SlotOverrideStatus.UNAVAILABLE)

        result = await set_slot(context, pool.id, "MC-1", None)

        assert result.status is None
        assert result.unavailable_count == 0
        assert (await factory.reload(Pool, pool.id)).unavailable_count == 0

    @pytest.mark.asyncio
    async def test_changing_an_existing_override_keeps_the_count(self, context, factory):
        pool = await factory.pool(total=2)
        await set_slot(context, pool.id, "MC-1", SlotOverrideStatus.UNAVAILABLE)

        result = await set_slot(context, pool.id, "MC-1", SlotOverrideStatus.MAINTENANCE)

        assert result.status == SlotOverrideStatus.MAINTENANCE.value
        assert result.unavailable_count == 1

    @pytest.mark.asyncio
    async def test_held_slot_cannot_go_offline(self, context, factory):
        pool = await factory.pool(total=3)
        reservation = await reserve_pool(context, factory, pool)

        with pytest.raises(SlotAlreadyTaken):
            await set_slot(context, pool.id, reservation.slot_label, SlotOverrideStatus.MAINTENANCE)

        refreshed = await factory.reload(Pool, pool.id)
        assert refreshed.unavailable_count == 0
        assert refreshed.reserved_count == 1

    @pytest.mark.asyncio
    async def test_full_pool_cannot_take_a_slot_offline(self, context, factory):
        pool = await factory.pool(total=1)
        await reserve_pool(context, factory, pool)

        with pytest.raises(PoolFull):
            await set_slot(context, pool.id, "MC-9", SlotOverrideStatus.UNAVAILABLE)

    @pytest.mark.asyncio
    async def test_empty_label_rejected(self, context, factory):
        pool = await factory.pool()

        with pytest.raises(InvalidRequestException):
            await set_slot(context, pool.id, "  ", SlotOverrideStatus.UNAVAILABLE)


class TestCacheAgainstConcurrentCommits:
    @pytest.mark.asyncio
    async def test_pool_view_read_before_a_commit_is_not_kept(self, context, factory, monkeypatch):
        pool = await factory.pool(total=5)

        async with context.db.session() as session:
            original_refresh = session.refresh

            async def refresh_then_allocate_elsewhere(instance, *args, **kwargs):
                await original_refresh(instance, *args, **kwargs)
                await reserve_pool(context, factory, pool)

            monkeypatch.setattr(session, "refresh", refresh_then_allocate_elsewhere)
            stale = await CapacityService(session, context).get_pool_availability(pool.id)

        assert stale.reserved_count == 0
        assert pool_key(pool.id) not in context.cache

        fresh = await availability(context, pool.id)
        assert fresh.reserved_count == 1
        assert fresh.available == 4

    @pytest.mark.asyncio
    async def test_section_view_read_before_a_commit_is_not_kept(self, context, factory, monkeypatch):
        unit = await factory.unit(section="E", label="1")
        user, vehicle = await factory.driver()

        async with context.db.session() as session:
            original_scalars = session.scalars

            async def read_then_allocate_elsewhere(*args, **kwargs):
                result = await original_scalars(*args, **kwargs)
                async with context.db.session() as other:
                    await ReservationService(other, context).allocate_unit(user.id, vehicle.id, unit.id)
                return result

            monkeypatch.setattr(session, "scalars", read_then_allocate_elsewhere)
            stale = await CapacityService(session, context).list_section_units("E")

        assert stale.available == 1
        assert section_key("E") not in context.cache

        async with context.db.session() as session:
            fresh = await CapacityService(session, context).list_section_units("E")
        assert fresh.available == 0
