# apps/api/audit/service.py

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from apps.api.audit.models import ActivityLog, ScanEvent
from core.db.core import DatabaseHandle
from core.db.mixins import utcnow

logger = logging.getLogger(__name__)


class AuditSink:
    """
    Best effort writer for scan events and the activity log.

    Called after the business transaction has committed, each append runs in
    its own session. Failures are logged and swallowed: losing an audit row
    must never turn a successful scan into an error for the caller.
    """

    def __init__(self, db: DatabaseHandle):
        self.db = db

    async def record_scan(
        self,
        reservation_id: int,
        scan_type: str,
        status_at_scan: str,
        actor_id: Optional[UUID] = None,
        scanned_at: Optional[datetime] = None,
    ) -> bool:
        return await self._append(
            ScanEvent(
                reservation_id=reservation_id,
                actor_id=actor_id,
                scan_type=scan_type,
                status_at_scan=status_at_scan,
                scanned_at=scanned_at or utcnow(),
            )
        )

    async def log_activity(
        self,
        action_type: str,
        description: str,
        user_id: Optional[UUID] = None,
        target_id=None,
        created_at: Optional[datetime] = None,
    ) -> bool:
        return await self._append(
            ActivityLog(
                user_id=user_id,
                target_id=str(target_id) if target_id is not None else None,
                action_type=action_type,
                description=description,
                created_at=created_at or utcnow(),
            )
        )

    async def _append(self, row) -> bool:
        try:
            async with self.db.session() as session:
                session.add(row)
                await session.commit()
            return True
        except Exception as e:
            logger.error(
                f"Failed to append {type(row).__name__} audit row: {e}", exc_info=True
            )
            return False
