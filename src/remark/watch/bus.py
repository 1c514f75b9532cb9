"""In-memory change event bus with per-path fan-out."""
import asyncio
import uuid
from collections.abc import AsyncIterator

import structlog

from remark.watch.types import ChangeEvent

logger = structlog.get_logger()

WILDCARD = "*"


class ChangeEventBus:
    """Best-effort broadcast of change events to viewer sessions.

    Each subscriber listens either to one file path or to every path
    ("*"). Delivery is at-most-once: publishing never waits, and a
    subscriber whose queue is full loses its oldest pending event so the
    freshest one is kept. There is no history; a subscriber only sees
    events published after it subscribed.

    Attributes:
        queue_size: Maximum pending events per subscriber.
        max_subscribers: Maximum number of concurrent subscribers.
    """

    def __init__(
        self,
        queue_size: int = 1,
        max_subscribers: int = 32,
    ) -> None:
        """Initialize event bus.

        Args:
            queue_size: Maximum items per subscriber queue.
            max_subscribers: Maximum concurrent subscribers allowed.
        """
        self._subscribers: dict[str, dict[str, asyncio.Queue[ChangeEvent]]] = {}
        self._queue_size = queue_size
        self._max_subscribers = max_subscribers
        self._dropped_count = 0
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        """Total number of active subscribers across all paths."""
        return sum(len(subs) for subs in self._subscribers.values())

    @property
    def dropped_events(self) -> int:
        """Total number of events dropped due to queue overflow."""
        return self._dropped_count

    async def publish(self, event: ChangeEvent) -> int:
        """Publish event to subscribers of its path and to wildcard subscribers.

        Args:
            event: Change event to publish.

        Returns:
            Number of subscribers that received the event.
        """
        delivered = 0

        for topic in (event.path, WILDCARD):
            for queue in list(self._subscribers.get(topic, {}).values()):
                try:
                    queue.put_nowait(event)
                    delivered += 1
                except asyncio.QueueFull:
                    try:
                        queue.get_nowait()
                        queue.put_nowait(event)
                        delivered += 1
                        self._dropped_count += 1
                    except asyncio.QueueEmpty:
                        pass

        return delivered

    async def subscribe(
        self,
        path: str = WILDCARD,
    ) -> tuple[str, AsyncIterator[ChangeEvent]]:
        """Subscribe to events for one path, or all paths.

        Args:
            path: File path to listen for. Use "*" for all events.

        Returns:
            Tuple of (subscriber_id, event_iterator).

        Raises:
            ValueError: If maximum subscribers reached.
        """
        async with self._lock:
            if self.subscriber_count >= self._max_subscribers:
                raise ValueError("Maximum subscribers reached")

            subscriber_id = str(uuid.uuid4())
            queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(
                maxsize=self._queue_size,
            )
            self._subscribers.setdefault(path, {})[subscriber_id] = queue

        logger.debug("subscriber_added", subscriber_id=subscriber_id, path=path)

        async def event_iterator() -> AsyncIterator[ChangeEvent]:
            try:
                while True:
                    yield await queue.get()
            finally:
                await self.unsubscribe(path, subscriber_id)

        return subscriber_id, event_iterator()

    async def unsubscribe(self, path: str, subscriber_id: str) -> None:
        """Remove a subscriber from the bus.

        Unknown subscribers are ignored, so this is safe to call twice.

        Args:
            path: Path the subscriber was subscribed to.
            subscriber_id: ID of the subscriber to remove.
        """
        async with self._lock:
            subscribers = self._subscribers.get(path)
            if subscribers is None or subscribers.pop(subscriber_id, None) is None:
                return
            if not subscribers:
                del self._subscribers[path]

        logger.debug("subscriber_removed", subscriber_id=subscriber_id, path=path)
