"""
Cycle Events - Notifications about finished reconciliation cycles.

The controller publishes one event per finished cycle. Watchers (the CLI
``--watch`` flag, tests) subscribe to the bus, optionally narrowed to one
reconciler or one resource, and consume the events as an async iterator.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from resources import ResourceKey
from result import Result

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Outcome of a finished cycle."""

    RECONCILED = "RECONCILED"
    REQUEUED = "REQUEUED"
    FAILED = "FAILED"


@dataclass
class ReconcileEvent:
    """Event emitted when a reconciliation cycle finishes."""

    event_type: EventType
    reconciler: str
    key: ResourceKey
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "reconciler": self.reconciler,
            "namespace": self.key.namespace,
            "name": self.key.name,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_result(cls, reconciler: str, key: ResourceKey, result: Result) -> "ReconcileEvent":
        """
        Create an event from the result of a cycle.

        Args:
            reconciler: Name of the reconciler that ran the cycle
            key: Identity of the reconciled resource
            result: The outcome of the cycle
        """
        if result.is_error():
            event_type = EventType.FAILED
        elif result.is_requeue():
            event_type = EventType.REQUEUED
        else:
            event_type = EventType.RECONCILED
        return cls(event_type=event_type, reconciler=reconciler, key=key, message=str(result))


class EventSubscription:
    """
    Buffered stream of events for one watcher.

    Iterating waits for the next matching event; iteration ends once the
    subscription is closed and its buffer is drained.
    """

    def __init__(
        self,
        queue_size: int,
        reconciler: Optional[str] = None,
        key: Optional[ResourceKey] = None,
    ):
        self.id = str(uuid.uuid4())
        self.reconciler = reconciler
        self.key = key
        self.dropped = 0
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

    def matches(self, event: ReconcileEvent) -> bool:
        if self.reconciler is not None and event.reconciler != self.reconciler:
            return False
        return self.key is None or event.key == self.key

    def deliver(self, event: ReconcileEvent) -> None:
        """Buffer an event, dropping it if the watcher is too slow."""
        if self.closed or not self.matches(event):
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Dropped {event.event_type.value} event of {event.key} for watcher {self.id}")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # The sentinel needs a free slot; make one by dropping the oldest event
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(None)

    def __aiter__(self) -> "EventSubscription":
        return self

    async def __anext__(self) -> ReconcileEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class EventBus:
    """
    In-memory fan-out of cycle events.

    Publishing never blocks: every subscription has a bounded buffer, and a
    full buffer loses the event for that subscription only, so a slow
    watcher never holds up reconciliation.
    """

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscriptions: Dict[str, EventSubscription] = {}

    def publish(self, event: ReconcileEvent) -> None:
        for subscription in list(self._subscriptions.values()):
            subscription.deliver(event)

    def subscribe(
        self, reconciler: Optional[str] = None, key: Optional[ResourceKey] = None
    ) -> EventSubscription:
        """
        Start watching events.

        Args:
            reconciler: Only events of this reconciler, if given
            key: Only events of this resource, if given

        Returns:
            The subscription, to iterate and later pass to unsubscribe
        """
        subscription = EventSubscription(self._queue_size, reconciler=reconciler, key=key)
        self._subscriptions[subscription.id] = subscription
        logger.debug(f"New event watcher: {subscription.id}")
        return subscription

    def unsubscribe(self, subscription: EventSubscription) -> None:
        """Stop a subscription; its iterator ends after the buffered events."""
        if self._subscriptions.pop(subscription.id, None) is not None:
            logger.debug(f"Removed event watcher: {subscription.id}")
        subscription.close()

    def subscriptions(self) -> List[EventSubscription]:
        return list(self._subscriptions.values())
