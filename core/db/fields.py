from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.types import TypeDecorator


class TZAwareDateTime(TypeDecorator):
    """
    DateTime column that always hands back timezone-aware UTC values.

    SQLite has no timezone support, so values are stored there as naive UTC
    and re-tagged on the way out. PostgreSQL gets aware values untouched.
    """

    impl = sa.DateTime
    cache_ok = True

    def __init__(self, timezone: bool = True, **kwargs):
        super().__init__(timezone=timezone, **kwargs)

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
