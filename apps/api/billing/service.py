# apps/api/billing/service.py

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update

from apps.api.billing.calculator import ZERO, ChargeBreakdown, plan_deduction, to_hours
from apps.api.billing.models import BalanceGrant, GrantStatus, PenaltyEntry
from apps.api.reservation.exceptions import (
    BalanceConflict,
    InsufficientBalance,
    OutstandingPenalty,
)
from apps.api.user.models import User
from core.architecture.service import AbstractService
from core.exceptions.database import NotFoundException
from core.exceptions.request import InvalidRequestException

logger = logging.getLogger(__name__)

# leftovers below this are treated as fully settled
SETTLEMENT_EPSILON = Decimal("0.00001")


@dataclass(frozen=True)
class ChargeResult:
    deducted_hours: Decimal
    penalty_hours: Decimal
    balance_hours: Decimal
    grant_id: Optional[UUID] = None
    penalty_id: Optional[int] = None


@dataclass(frozen=True)
class SettlementResult:
    grant_id: Optional[UUID]
    hours_granted: Decimal
    penalty_applied_hours: Decimal
    hours_after_penalty: Decimal
    outstanding_penalty_hours: Decimal
    balance_hours: Decimal


class BillingService(AbstractService):
    """
    Balance, penalty and eligibility bookkeeping.

    ``charge_session`` runs inside the caller's transaction (session end) and
    never commits. ``grant_hours`` is a standalone operation and commits.
    Grant and penalty rows are updated by compare-and-set on the value that
    was read, so two concurrent writers cannot both spend the same hours.
    """

    # ===== Queries =====

    async def get_balance_hours(self, user_id: UUID) -> Decimal:
        total = await self.session.scalar(
            select(func.coalesce(func.sum(BalanceGrant.hours_remaining), 0)).where(
                BalanceGrant.user_id == user_id,
                BalanceGrant.status == GrantStatus.ACTIVE.value,
            )
        )
        return to_hours(total or 0)

    async def get_outstanding_penalty(self, user_id: UUID) -> Decimal:
        total = await self.session.scalar(
            select(func.coalesce(func.sum(PenaltyEntry.penalty_hours), 0)).where(
                PenaltyEntry.user_id == user_id
            )
        )
        return to_hours(total or 0)

    async def check_eligibility(self, user_id: UUID) -> None:
        """Raise before any capacity lock when the user may not reserve."""
        penalty = await self.get_outstanding_penalty(user_id)
        if penalty > ZERO:
            logger.info(f"User {user_id} blocked by outstanding penalty of {penalty}h")
            raise OutstandingPenalty(hours=penalty)

        balance = await self.get_balance_hours(user_id)
        if balance <= ZERO:
            logger.info(f"User {user_id} blocked with no remaining balance")
            raise InsufficientBalance()

    # ===== Session charge =====

    async def charge_session(
        self,
        user_id: UUID,
        breakdown: ChargeBreakdown,
        reservation_id: Optional[int] = None,
        is_guest: bool = False,
    ) -> ChargeResult:
        """
        Deduct a completed session from the oldest grant that still has hours
        and record any shortfall as a penalty. Does not commit.
        """
        total = breakdown.total_hours
        if is_guest:
            # walk-in guests pay at the booth; nothing is drawn from a balance
            return ChargeResult(
                deducted_hours=ZERO, penalty_hours=ZERO, balance_hours=ZERO
            )

        grant = await self.session.scalar(
            select(BalanceGrant)
            .where(
                BalanceGrant.user_id == user_id,
                BalanceGrant.status == GrantStatus.ACTIVE.value,
                BalanceGrant.hours_remaining > 0,
            )
            .order_by(BalanceGrant.granted_at, BalanceGrant.id)
            .limit(1)
            .with_for_update()
        )
        remaining = to_hours(grant.hours_remaining) if grant else ZERO
        plan = plan_deduction(total, remaining)

        if grant is not None and plan.deducted_hours > ZERO:
            new_remaining = to_hours(remaining - plan.deducted_hours)
            result = await self.session.execute(
                update(BalanceGrant)
                .where(
                    BalanceGrant.id == grant.id,
                    BalanceGrant.hours_remaining == remaining,
                )
                .values(
                    hours_remaining=new_remaining,
                    hours_used=to_hours(to_hours(grant.hours_used or 0) + plan.deducted_hours),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(
                    f"Grant {grant.id} for user {user_id} changed during deduction, aborting charge"
                )
                raise BalanceConflict()

        penalty_id = None
        if plan.penalty_hours > ZERO:
            penalty = PenaltyEntry(
                user_id=user_id,
                reservation_id=reservation_id,
                penalty_hours=plan.penalty_hours,
                created_at=self.now(),
            )
            self.session.add(penalty)
            await self.session.flush()
            penalty_id = penalty.id
            logger.info(
                f"Penalty of {plan.penalty_hours}h recorded for user {user_id} "
                f"(reservation {reservation_id}, charge {total}h, remaining {remaining}h)"
            )

        balance = await self.get_balance_hours(user_id)
        return ChargeResult(
            deducted_hours=plan.deducted_hours,
            penalty_hours=plan.penalty_hours,
            balance_hours=balance,
            grant_id=grant.id if grant else None,
            penalty_id=penalty_id,
        )

    # ===== Grants & settlement =====

    async def grant_hours(
        self, user_id: UUID, hours, source: Optional[str] = None
    ) -> SettlementResult:
        """
        Record newly acquired hours, paying down outstanding penalties first.

        Penalties are consumed oldest first; fully paid entries are deleted,
        the last one touched may be reduced. Whatever is left becomes a new
        active grant. Everything commits together.
        """
        hours = to_hours(hours)
        if hours <= ZERO:
            raise InvalidRequestException(
                "Granted hours must be positive", error_code="INVALID_HOURS"
            )
        user = await self.session.get(User, user_id)
        if not user:
            raise NotFoundException("User not found", error_code="USER_NOT_FOUND")

        try:
            available = hours
            applied = ZERO
            penalties = (
                await self.session.scalars(
                    select(PenaltyEntry)
                    .where(PenaltyEntry.user_id == user_id)
                    .order_by(PenaltyEntry.created_at, PenaltyEntry.id)
                    .with_for_update()
                )
            ).all()

            for entry in penalties:
                if available <= ZERO:
                    break
                owed = to_hours(entry.penalty_hours)
                used = min(available, owed)
                leftover = to_hours(owed - used)
                if leftover <= SETTLEMENT_EPSILON:
                    stmt = delete(PenaltyEntry).where(
                        PenaltyEntry.id == entry.id, PenaltyEntry.penalty_hours == owed
                    )
                else:
                    stmt = (
                        update(PenaltyEntry)
                        .where(PenaltyEntry.id == entry.id, PenaltyEntry.penalty_hours == owed)
                        .values(penalty_hours=leftover)
                    )
                result = await self.session.execute(
                    stmt.execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise BalanceConflict("Penalty changed while settling. Please retry.")
                available = to_hours(available - used)
                applied = to_hours(applied + used)

            grant = None
            if available > ZERO:
                grant = BalanceGrant(
                    user_id=user_id,
                    hours_granted=available,
                    hours_remaining=available,
                    hours_used=ZERO,
                    status=GrantStatus.ACTIVE.value,
                    source=source,
                    granted_at=self.now(),
                )
                self.session.add(grant)

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        outstanding = await self.get_outstanding_penalty(user_id)
        balance = await self.get_balance_hours(user_id)
        logger.info(
            f"Granted {hours}h to user {user_id} ({source}); {applied}h settled penalties, "
            f"{available}h added to balance, {outstanding}h still owed"
        )
        return SettlementResult(
            grant_id=grant.id if grant else None,
            hours_granted=hours,
            penalty_applied_hours=applied,
            hours_after_penalty=available,
            outstanding_penalty_hours=outstanding,
            balance_hours=balance,
        )


BillingServiceDependency = Annotated[BillingService, BillingService.get_dependency()]
