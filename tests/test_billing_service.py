"""Tests for balance, eligibility and penalty settlement."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from apps.api.billing.calculator import ChargeBreakdown
from apps.api.billing.models import BalanceGrant, PenaltyEntry
from apps.api.billing.service import BillingService
from apps.api.reservation.exceptions import InsufficientBalance, OutstandingPenalty
from core.exceptions.database import NotFoundException
from core.exceptions.request import InvalidRequestException


async def grant(context, user_id, hours, source="test"):
    async with context.db.session() as session:
        return await BillingService(session, context).grant_hours(user_id, hours, source=source)


async def penalties_of(context, user):
    async with context.db.session() as session:
        rows = await session.scalars(
            select(PenaltyEntry).where(PenaltyEntry.user_id == user.id).order_by(PenaltyEntry.id)
        )
        return [row.penalty_hours for row in rows]


class TestBalance:
    @pytest.mark.asyncio
    async def test_balance_sums_active_grants(self, context, factory):
        user = await factory.user()
        await factory.grant(user, "1.5")
        await factory.grant(user, "2.25")

        async with context.db.session() as session:
            balance = await BillingService(session, context).get_balance_hours(user.id)

        assert balance == Decimal("3.75")

    @pytest.mark.asyncio
    async def test_expired_grants_do_not_count(self, context, factory):
        user = await factory.user()
        stale = await factory.grant(user, "4")
        async with context.db.session() as session:
            row = await session.get(BalanceGrant, stale.id)
            row.status = "expired"
            await session.commit()

        async with context.db.session() as session:
            with pytest.raises(InsufficientBalance):
                await BillingService(session, context).check_eligibility(user.id)


class TestSettlement:
    @pytest.mark.asyncio
    async def test_grant_without_penalties(self, context, factory):
        user = await factory.user()

        result = await grant(context, user.id, "3")

        assert result.penalty_applied_hours == Decimal("0")
        assert result.hours_after_penalty == Decimal("3")
        assert result.outstanding_penalty_hours == Decimal("0")
        assert result.balance_hours == Decimal("3")
        assert result.grant_id is not None

    @pytest.mark.asyncio
    async def test_penalties_are_consumed_oldest_first(self, context, factory, clock):
        user = await factory.user()
        await factory.penalty(user, "0.5", created_at=clock() - timedelta(days=2))
        await factory.penalty(user, "1.25", created_at=clock() - timedelta(days=1))
        await factory.penalty(user, "2", created_at=clock())

        result = await grant(context, user.id, "1")

        assert result.penalty_applied_hours == Decimal("1")
        assert result.hours_after_penalty == Decimal("0")
        assert result.grant_id is None
        assert result.outstanding_penalty_hours == Decimal("2.75")
        assert await penalties_of(context, user) == [Decimal("0.75"), Decimal("2")]

    @pytest.mark.asyncio
    async def test_leftover_becomes_balance(self, context, factory):
        user = await factory.user()
        await factory.penalty(user, "0.5")

        result = await grant(context, user.id, "3")

        assert result.penalty_applied_hours == Decimal("0.5")
        assert result.hours_after_penalty == Decimal("2.5")
        assert result.outstanding_penalty_hours == Decimal("0")
        assert result.balance_hours == Decimal("2.5")
        assert await penalties_of(context, user) == []

        async with context.db.session() as session:
            await BillingService(session, context).check_eligibility(user.id)

    @pytest.mark.asyncio
    async def test_penalty_blocks_until_settled(self, context, factory):
        user = await factory.user()
        await factory.grant(user, "5")
        await factory.penalty(user, "1")

        async with context.db.session() as session:
            with pytest.raises(OutstandingPenalty):
                await BillingService(session, context).check_eligibility(user.id)

        await grant(context, user.id, "1")

        async with context.db.session() as session:
            await BillingService(session, context).check_eligibility(user.id)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_hours(self, context, factory):
        user = await factory.user()

        with pytest.raises(InvalidRequestException):
            await grant(context, user.id, "0")

    @pytest.mark.asyncio
    async def test_unknown_user(self, context, factory):
        async with context.db.session() as session:
            with pytest.raises(NotFoundException):
                await BillingService(session, context).grant_hours(uuid.uuid4(), Decimal("1"))


class TestChargeSession:
    @pytest.mark.asyncio
    async def test_charge_without_any_grant_is_all_penalty(self, context, factory):
        user = await factory.user()
        breakdown = ChargeBreakdown(Decimal("0"), Decimal("2"), Decimal("2"))

        async with context.db.session() as session:
            result = await BillingService(session, context).charge_session(user.id, breakdown)
            await session.commit()

        assert result.deducted_hours == Decimal("0")
        assert result.penalty_hours == Decimal("2")
        assert result.grant_id is None
        assert await penalties_of(context, user) == [Decimal("2")]

    @pytest.mark.asyncio
    async def test_only_the_oldest_grant_is_drawn(self, context, factory, clock):
        user = await factory.user()
        await factory.grant(user, "0.5", granted_at=clock() - timedelta(days=3))
        await factory.grant(user, "10")
        breakdown = ChargeBreakdown(Decimal("0"), Decimal("2"), Decimal("2"))

        async with context.db.session() as session:
            result = await BillingService(session, context).charge_session(user.id, breakdown)
            await session.commit()

        assert result.deducted_hours == Decimal("0.5")
        assert result.penalty_hours == Decimal("1.5")
        assert result.balance_hours == Decimal("10")

    @pytest.mark.asyncio
    async def test_exhausted_grants_are_skipped(self, context, factory, clock):
        user = await factory.user()
        await factory.grant(user, "0", granted_at=clock() - timedelta(days=3))
        await factory.grant(user, "4")
        breakdown = ChargeBreakdown(Decimal("0"), Decimal("1"), Decimal("1"))

        async with context.db.session() as session:
            result = await BillingService(session, context).charge_session(user.id, breakdown)
            await session.commit()

        assert result.deducted_hours == Decimal("1")
        assert result.penalty_hours == Decimal("0")
        assert result.balance_hours == Decimal("3")
