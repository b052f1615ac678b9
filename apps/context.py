# apps/context.py
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
import uuid

from apps.settings import AppConfig
from core.db.core import DatabaseHandle
from core.events.bus import EventBus

current_user_id_ctx: ContextVar[uuid.UUID | None] = ContextVar(
    "current_user_id", default=None
)


def set_current_user_id(user_id: uuid.UUID):
    current_user_id_ctx.set(user_id)


def get_current_user_id() -> uuid.UUID | None:
    return current_user_id_ctx.get()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AppContext:
    """
    Explicit handle passed into every core operation.

    Built once by the application lifespan (or a test fixture) and owned by
    the process; services never reach for module level singletons.
    """

    settings: AppConfig
    db: DatabaseHandle
    events: EventBus
    cache: "AvailabilityCache"
    audit: "AuditSink"
    identity: "IdentityProvisioner"
    clock: Callable[[], datetime] = field(default=utcnow)


def build_context(
    settings: AppConfig,
    db: DatabaseHandle | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> AppContext:
    from apps.api.audit.service import AuditSink
    from apps.api.capacity.cache import AvailabilityCache
    from apps.api.user.service import IdentityProvisioner
    from apps.registry import load_models

    load_models()

    db = db or DatabaseHandle(settings.DATABASE_URL, echo=settings.DEBUG)
    return AppContext(
        settings=settings,
        db=db,
        events=EventBus(max_queue_size=settings.EVENT_QUEUE_SIZE),
        cache=AvailabilityCache(
            ttl_seconds=settings.CACHE_TTL_SECONDS,
            max_entries=settings.CACHE_MAX_ENTRIES,
            clock=clock,
        ),
        audit=AuditSink(db),
        identity=IdentityProvisioner(),
        clock=clock,
    )
