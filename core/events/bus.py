import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.events.schema import Event

logger = logging.getLogger(__name__)

Subscriber = Callable[[Event], Awaitable[None]]


class EventBus:
    """
    In-process fan-out of domain events.

    Producers call :meth:`publish` once their transaction has committed. The
    call never blocks and never raises: the event is queued and a background
    worker hands it to every subscriber. A failing subscriber is logged and
    does not affect the others or the producer.
    """

    def __init__(self, max_queue_size: int = 1000):
        self._max_queue_size = max_queue_size
        self._subscribers: List[Subscriber] = []
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, event_type: str, payload: Optional[Dict[str, Any]] = None) -> None:
        event = Event(type=event_type, payload=payload or {})
        if self._queue is None:
            logger.debug(f"Event bus not started, dropping {event_type}")
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping {event_type} {event.payload}")

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._worker = asyncio.create_task(self._run(), name="event_bus_worker")
        logger.info("Event bus started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._queue = None
        logger.info("Event bus stopped")

    async def drain(self) -> None:
        """Wait until every queued event has been delivered."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        for subscriber in list(self._subscribers):
            try:
                await subscriber(event)
            except Exception as e:
                logger.error(
                    f"Subscriber {getattr(subscriber, '__name__', subscriber)} "
                    f"failed on {event.type}: {e}",
                    exc_info=True,
                )
