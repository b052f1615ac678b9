from core.events.bus import EventBus
from core.events.schema import Event

__all__ = ["EventBus", "Event"]
