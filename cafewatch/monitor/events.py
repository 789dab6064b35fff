"""One-way event emission from the engine to any interested observer.

The engine publishes; UI layers (the websocket route, the CLI) subscribe.
Nothing in the engine holds a reference back to a subscriber beyond its
queue, and a slow subscriber only loses its own oldest events.

Pattern: in-process fan-out over bounded asyncio queues.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class MonitorEventType(str, Enum):
    CYCLE_STARTED = "cycle_started"
    CYCLE_COMPLETED = "cycle_completed"
    SOURCE_SCANNED = "source_scanned"
    AUTH_STATUS_CHANGED = "auth_status_changed"
    NOTIFICATION_SENT = "notification_sent"


@dataclass(frozen=True)
class MonitorEvent:
    type: MonitorEventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


class MonitorEventBus:
    """Fan-out of MonitorEvents to subscriber queues.

    Lifecycle:
        1. ``subscribe()`` returns a queue to read events from
        2. ``publish(event)`` from engine code (never blocks)
        3. ``unsubscribe(queue)`` when the reader goes away
    """

    def __init__(self, max_queue_size: int = 100, max_subscribers: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._max_subscribers = max_subscribers
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue | None:
        """Register a new subscriber.

        Returns:
            The subscriber's queue, or None if max subscribers reached.
        """
        if len(self._subscribers) >= self._max_subscribers:
            return None
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.add(queue)
        logger.debug("Event subscriber added (total=%d)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.debug("Event subscriber removed (total=%d)", len(self._subscribers))

    def publish(self, event: MonitorEvent) -> None:
        """Deliver an event to every subscriber, dropping the oldest on overflow."""
        for queue in list(self._subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug("Dropping %s event for a full subscriber", event.type.value)

    def emit(self, event_type: MonitorEventType, **data: Any) -> MonitorEvent:
        """Build and publish an event in one call."""
        event = MonitorEvent(type=event_type, data=data)
        self.publish(event)
        return event
