"""Async fan-out bus carrying session events to UI observers."""

import asyncio
import logging
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

_DEFAULT_QUEUE_SIZE = 256

T = TypeVar("T")


class EventBus(Generic[T]):
    """Fan-out event bus backed by one asyncio.Queue per observer.

    The session controller is the only producer. A full observer queue
    drops the event for that observer so a stalled UI never holds up the
    controller's control flow.
    """

    def __init__(self, maxsize: int = _DEFAULT_QUEUE_SIZE) -> None:
        self._subscribers: list[asyncio.Queue[T]] = []
        self._maxsize = maxsize

    def publish(self, event: T) -> None:
        """Synchronously push *event* to every observer queue."""
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    "Observer queue full — dropping %s event",
                    getattr(event, "type", type(event).__name__),
                )

    async def subscribe(self) -> asyncio.Queue[T]:
        """Create and return a new observer queue."""
        queue: asyncio.Queue[T] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(queue)
        logger.debug("Observer added (total: %d)", len(self._subscribers))
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[T]) -> None:
        """Remove an observer queue. No-op if the queue is not registered."""
        try:
            self._subscribers.remove(queue)
            logger.debug("Observer removed (remaining: %d)", len(self._subscribers))
        except ValueError:
            logger.debug("Attempted to unsubscribe an unknown queue — ignoring")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
