import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, Field


class Event(BaseModel):
    """Envelope handed to every subscriber: ``{"type": ..., "payload": ...}``."""

    message_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: str = Field(..., description="Event name, e.g. reservation:updated")
    payload: Dict[str, Any] = Field(default_factory=dict)
    published_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
