"""
Fan out run events to connected observers.

Delivery is fire-and-forget: each subscriber owns a bounded queue and a
full queue drops the event for that subscriber only, so a slow observer
never blocks the pipeline.
"""

from typing import Any, List, Optional
import asyncio
import logging
import threading
import weakref

from models.base import EventType
from schemas.migration import MigrationEvent
from core.config import settings

logger = logging.getLogger(__name__)


class Subscription:
    """Handle held by one observer; events arrive on its queue"""

    def __init__(self, maxsize: int):
        self.queue: "asyncio.Queue[MigrationEvent]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def deliver(self, event: MigrationEvent) -> bool:
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Subscriber queue full, dropped {event.type} event ({self.dropped} dropped)")
            return False

    async def get(self) -> MigrationEvent:
        return await self.queue.get()

    def drain(self) -> List[MigrationEvent]:
        """Take every queued event without waiting"""
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events


class EventBroadcaster:
    """
    Registry of subscribers plus broadcast.

    Subscribers are held weakly: an observer that goes away without
    unsubscribing drops out of the registry on its own. Broadcast iterates
    a copy of the registry so concurrent subscribe/unsubscribe calls
    cannot disturb it.
    """

    def __init__(self, queue_size: Optional[int] = None):
        self.queue_size = queue_size or settings.SUBSCRIBER_QUEUE_SIZE
        self._subscribers: "weakref.WeakSet[Subscription]" = weakref.WeakSet()
        self._registry_lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._registry_lock:
            return len(self._subscribers)

    def subscribe(self, state: Any) -> Subscription:
        """
        Register an observer whose first event is `state`.

        The caller passes the current full snapshot so the observer never
        starts blind.
        """
        subscription = Subscription(self.queue_size)
        subscription.deliver(MigrationEvent(type=EventType.STATE, data=state))
        with self._registry_lock:
            self._subscribers.add(subscription)
        logger.debug(f"Observer subscribed ({self.subscriber_count} connected)")
        return subscription

    def unsubscribe(self, subscription: Subscription):
        with self._registry_lock:
            self._subscribers.discard(subscription)
        logger.debug(f"Observer unsubscribed ({self.subscriber_count} connected)")

    def publish(self, event_type: EventType, data: Any) -> int:
        """
        Deliver an event to every current subscriber.

        Returns:
            Number of subscribers the event was queued for
        """
        event = MigrationEvent(type=event_type, data=data)
        with self._registry_lock:
            targets = list(self._subscribers)

        delivered = 0
        for subscription in targets:
            if subscription.deliver(event):
                delivered += 1
        return delivered
