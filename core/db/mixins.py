from datetime import datetime, timezone

from sqlalchemy import Column

from core.db.fields import TZAwareDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampsMixin:
    created_at = Column(TZAwareDateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        TZAwareDateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
