# apps/api/billing/models.py

import enum
import uuid

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, Uuid

from core.db.base import AbstractSQLModel
from core.db.fields import TZAwareDateTime
from core.db.mixins import TimestampsMixin, utcnow


class GrantStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class BalanceGrant(AbstractSQLModel, TimestampsMixin):
    """
    A block of parking hours granted to a user (a subscription purchase or an
    operator top-up). Balance is the sum of ``hours_remaining`` over active
    grants and is drawn down oldest grant first.
    """

    __tablename__ = "balance_grants"
    __table_args__ = (
        CheckConstraint("hours_remaining >= 0", name="ck_grant_remaining_non_negative"),
        Index("ix_grant_user_status_granted", "user_id", "status", "granted_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    hours_granted = Column(Numeric(12, 4), nullable=False)
    hours_remaining = Column(Numeric(12, 4), nullable=False)
    hours_used = Column(Numeric(12, 4), nullable=False, default=0, server_default="0")
    status = Column(String(20), nullable=False, default=GrantStatus.ACTIVE.value)
    source = Column(String(50), nullable=True, comment="plan name, payment reference or 'operator'")
    granted_at = Column(TZAwareDateTime(timezone=True), nullable=False, default=utcnow)


class PenaltyEntry(AbstractSQLModel):
    """Unpaid hour debt; settled oldest first when new hours are granted."""

    __tablename__ = "penalties"
    __table_args__ = (
        CheckConstraint("penalty_hours > 0", name="ck_penalty_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=True)
    penalty_hours = Column(Numeric(12, 4), nullable=False)
    created_at = Column(TZAwareDateTime(timezone=True), nullable=False, default=utcnow)
