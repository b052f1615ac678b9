# apps/api/reservation/validator.py

import logging
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Optional, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm.attributes import set_committed_value

from apps.api.audit.models import ScanType
from apps.api.billing.calculator import ChargeBreakdown, compute_breakdown
from apps.api.billing.service import BillingService, ChargeResult
from apps.api.capacity.effects import publish_changes
from apps.api.reservation.exceptions import ReservationStateConflict, TokenNotFound
from apps.api.reservation.lifecycle import ReservationLifecycle
from apps.api.reservation.models import HOLDING_STATUSES, Reservation, ReservationStatus
from apps.api.reservation.token import decode_scan_code
from apps.api.user.models import User
from core.architecture.service import AbstractService

logger = logging.getLogger(__name__)

ScanCode = Union[str, bytes, Dict[str, Any]]


@dataclass(frozen=True)
class SessionEndResult:
    reservation: Reservation
    breakdown: ChargeBreakdown
    charge: ChargeResult
    status_at_scan: str


class SessionValidator(AbstractService):
    """
    Drives reservations from scanned codes.

    A token resolves only while the reservation is in the status the scan
    expects, so unknown, already used and already ended codes all look the
    same to the scanner: :class:`TokenNotFound`.
    """

    def __init__(self, session, context):
        super().__init__(session, context)
        self.lifecycle = ReservationLifecycle(session)
        self.billing = BillingService(session, context)

    async def _resolve(self, code: ScanCode, statuses) -> Reservation:
        token = decode_scan_code(code)
        reservation = await self.session.scalar(
            select(Reservation).where(
                Reservation.session_token == token,
                Reservation.status.in_(statuses),
            )
        )
        if not reservation:
            raise TokenNotFound()
        return reservation

    async def start_session(self, code: ScanCode, actor_id: Optional[UUID] = None) -> Reservation:
        reservation = await self._resolve(code, (ReservationStatus.RESERVED.value,))
        now = self.now()
        try:
            changes = await self.lifecycle.activate(reservation, now)
            await self.session.commit()
        except ReservationStateConflict:
            await self.session.rollback()
            # someone else consumed the token between lookup and update
            raise TokenNotFound()
        except Exception:
            await self.session.rollback()
            raise

        publish_changes(self.context, changes)
        await self.context.audit.record_scan(
            reservation.id,
            ScanType.START.value,
            ReservationStatus.RESERVED.value,
            actor_id=actor_id,
            scanned_at=now,
        )
        await self.context.audit.log_activity(
            "SESSION_STARTED",
            f"Parking session started for reservation {reservation.id}",
            user_id=actor_id or reservation.requester_id,
            target_id=reservation.id,
            created_at=now,
        )
        return reservation

    async def end_session(self, code: ScanCode, actor_id: Optional[UUID] = None) -> SessionEndResult:
        reservation = await self._resolve(code, HOLDING_STATUSES)
        try:
            return await self.end_reservation(reservation, actor_id=actor_id)
        except ReservationStateConflict:
            raise TokenNotFound()

    async def end_reservation(
        self, reservation: Reservation, actor_id: Optional[UUID] = None
    ) -> SessionEndResult:
        """
        Complete the reservation and bill it in one transaction. Any billing
        failure rolls the transition back, so capacity stays held and the
        call can be retried.
        """
        now = self.now()
        status_at_scan = reservation.status
        started_at = reservation.started_at or now
        breakdown = compute_breakdown(
            reservation.created_at,
            started_at,
            now,
            min_charge_minutes=self.context.settings.MIN_CHARGE_MINUTES,
        )

        try:
            changes = await self.lifecycle.complete(
                reservation,
                now,
                billing={
                    "wait_hours": breakdown.wait_hours,
                    "parking_hours": breakdown.parking_hours,
                    "charged_hours": breakdown.total_hours,
                },
            )
            requester = await self.session.get(User, reservation.requester_id)
            charge = await self.billing.charge_session(
                reservation.requester_id,
                breakdown,
                reservation_id=reservation.id,
                is_guest=bool(requester and requester.is_guest),
            )
            await self.session.execute(
                update(Reservation)
                .where(Reservation.id == reservation.id)
                .values(penalty_hours=charge.penalty_hours)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        set_committed_value(reservation, "penalty_hours", charge.penalty_hours)

        publish_changes(self.context, changes)
        scan_type = (
            ScanType.END_ACTIVE if status_at_scan == ReservationStatus.ACTIVE.value else ScanType.END_RESERVED
        )
        await self.context.audit.record_scan(
            reservation.id, scan_type.value, status_at_scan, actor_id=actor_id, scanned_at=now
        )
        await self.context.audit.log_activity(
            "SESSION_ENDED",
            f"Reservation {reservation.id} completed: {breakdown.total_hours}h charged, "
            f"{charge.deducted_hours}h deducted, {charge.penalty_hours}h penalty",
            user_id=actor_id or reservation.requester_id,
            target_id=reservation.id,
            created_at=now,
        )
        logger.info(
            f"Reservation {reservation.id} ended from '{status_at_scan}': "
            f"wait={breakdown.wait_hours} parking={breakdown.parking_hours} "
            f"total={breakdown.total_hours} penalty={charge.penalty_hours}"
        )
        return SessionEndResult(
            reservation=reservation,
            breakdown=breakdown,
            charge=charge,
            status_at_scan=status_at_scan,
        )


SessionValidatorDependency = Annotated[SessionValidator, SessionValidator.get_dependency()]
