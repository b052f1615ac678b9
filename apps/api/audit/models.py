# apps/api/audit/models.py

import enum

from sqlalchemy import Column, Integer, String, Text, Uuid

from core.db.base import AbstractSQLModel
from core.db.fields import TZAwareDateTime
from core.db.mixins import utcnow


class ScanType(str, enum.Enum):
    START = "start"
    END_RESERVED = "end_reserved"
    END_ACTIVE = "end_active"


class ScanEvent(AbstractSQLModel):
    """Append-only record of every accepted start/end scan."""

    __tablename__ = "scan_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # no foreign keys: audit rows must never block or be blocked by core writes
    reservation_id = Column(Integer, nullable=False, index=True)
    actor_id = Column(Uuid(as_uuid=True), nullable=True)
    scan_type = Column(String(20), nullable=False)
    status_at_scan = Column(String(20), nullable=False)
    scanned_at = Column(TZAwareDateTime(timezone=True), nullable=False, default=utcnow)


class ActivityLog(AbstractSQLModel):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    target_id = Column(String(64), nullable=True)
    action_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(TZAwareDateTime(timezone=True), nullable=False, default=utcnow)
