# apps/api/reservation/sweeper.py

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select

from apps.api.capacity.effects import publish_changes
from apps.api.reservation.exceptions import ReservationStateConflict
from apps.api.reservation.lifecycle import ReservationLifecycle
from apps.api.reservation.models import Reservation, ReservationStatus

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    cutoff: datetime
    candidates: int = 0
    succeeded: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    errored: List[int] = field(default_factory=list)


class GracePeriodSweeper:
    """
    Invalidates reservations that were never started within the grace period
    and gives their capacity back.

    Every candidate is handled in its own session and transaction, so a
    conflict or failure on one reservation does not affect the rest of the
    batch. Running it twice, or concurrently with a start scan on the same
    reservation, is safe: the guarded transition lets exactly one writer win.
    """

    def __init__(self, context, grace_minutes: Optional[int] = None):
        self.context = context
        self.grace_minutes = (
            grace_minutes if grace_minutes is not None else context.settings.GRACE_PERIOD_MINUTES
        )

    async def find_candidates(self, cutoff: datetime) -> List[int]:
        async with self.context.db.session() as session:
            result = await session.scalars(
                select(Reservation.id)
                .where(
                    Reservation.status == ReservationStatus.RESERVED.value,
                    Reservation.started_at.is_(None),
                    Reservation.created_at <= cutoff,
                )
                .order_by(Reservation.created_at, Reservation.id)
            )
            return list(result.all())

    async def run_once(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or self.context.clock()
        cutoff = now - timedelta(minutes=self.grace_minutes)
        report = SweepReport(cutoff=cutoff)

        candidate_ids = await self.find_candidates(cutoff)
        report.candidates = len(candidate_ids)
        for reservation_id in candidate_ids:
            await self._expire(reservation_id, now, report)

        if report.candidates:
            logger.info(
                f"Grace sweep (cutoff {cutoff.isoformat()}): {len(report.succeeded)} invalidated, "
                f"{len(report.skipped)} skipped, {len(report.errored)} errored"
            )
        else:
            logger.debug(f"Grace sweep (cutoff {cutoff.isoformat()}): nothing to expire")
        return report

    async def _expire(self, reservation_id: int, now: datetime, report: SweepReport) -> None:
        async with self.context.db.session() as session:
            try:
                reservation = await session.get(Reservation, reservation_id)
                if reservation is None or reservation.status != ReservationStatus.RESERVED.value:
                    report.skipped.append(reservation_id)
                    logger.info(f"Reservation {reservation_id} no longer reserved, skipping")
                    return
                changes = await ReservationLifecycle(session).invalidate(reservation, now)
                await session.commit()
            except ReservationStateConflict:
                await session.rollback()
                report.skipped.append(reservation_id)
                logger.info(f"Reservation {reservation_id} changed concurrently, skipping")
                return
            except Exception as e:
                await session.rollback()
                report.errored.append(reservation_id)
                logger.error(f"Failed to expire reservation {reservation_id}: {e}", exc_info=True)
                return

        report.succeeded.append(reservation_id)
        publish_changes(self.context, changes)
        await self.context.audit.log_activity(
            "RESERVATION_EXPIRED",
            f"Reservation {reservation_id} not started within {self.grace_minutes} minutes",
            user_id=reservation.requester_id,
            target_id=reservation_id,
            created_at=now,
        )
        logger.info(f"Reservation {reservation_id} invalidated after grace period")

    async def run_forever(self, interval_seconds: Optional[int] = None) -> None:
        interval = interval_seconds or self.context.settings.SWEEP_INTERVAL_SECONDS
        logger.info(
            f"Grace sweeper running every {interval}s (grace {self.grace_minutes} min)"
        )
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Grace sweep pass failed: {e}", exc_info=True)
            await asyncio.sleep(interval)
