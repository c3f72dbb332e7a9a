"""In-process fan-out of queue notifications.

The broadcaster knows nothing about transports. A subscriber gets a
``Subscription`` and pulls ``Event`` objects from it; a transport such as a
Server-Sent-Events endpoint can render each event with ``format_sse``.
"""

import json
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from nitpix.models.task import ActivityEntry, ActivityType
from nitpix.services.exceptions import EventChannelDisconnectedError

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """A notification delivered to subscribers."""
    kind: str
    data: Any


def format_sse(event: Event) -> str:
    """Render an event as a Server-Sent-Events frame."""
    return f"event: {event.kind}\ndata: {json.dumps(event.data)}\n\n"


class Subscription:
    """One subscriber's channel of serialized events."""

    def __init__(self, maxsize: int = 0):
        self._queue: "queue.Queue[Optional[tuple]]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, kind: str, message: str) -> None:
        """Queue a serialized event. Raises if the channel is closed or full."""
        if self.closed:
            raise EventChannelDisconnectedError("Subscription is closed")
        self._queue.put_nowait((kind, message))

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Next event, or None when ``timeout`` expires.

        Raises:
            EventChannelDisconnectedError: Once the subscription is closed
        """
        if self.closed:
            raise EventChannelDisconnectedError("Subscription is closed")
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is None:
            raise EventChannelDisconnectedError("Subscription is closed")
        kind, message = item
        return Event(kind=kind, data=json.loads(message))

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        try:
            # Wake a blocked reader
            self._queue.put_nowait(None)
        except queue.Full:
            pass


class EventBroadcaster:
    """Connected subscribers plus the ephemeral activity log of running tasks."""

    def __init__(self):
        self._subscribers: Set[Subscription] = set()
        self._activity: Dict[str, List[ActivityEntry]] = {}
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, maxsize: int = 0) -> Subscription:
        subscription = Subscription(maxsize=maxsize)
        with self._lock:
            self._subscribers.add(subscription)
        logger.debug(f"Subscriber connected ({self.subscriber_count} total)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)
        subscription.close()

    def broadcast(self, kind: str, payload: Any) -> int:
        """Send an event to every open subscriber.

        Subscribers that are closed or fail to accept the event are dropped.

        Returns:
            Number of subscribers the event was delivered to
        """
        message = json.dumps(payload)
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for subscription in subscribers:
            try:
                subscription.deliver(kind, message)
                delivered += 1
            except Exception as e:
                logger.debug(f"Dropping subscriber: {type(e).__name__}: {e}")
                self.unsubscribe(subscription)
        return delivered

    def close(self) -> None:
        """Disconnect every subscriber."""
        with self._lock:
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for subscription in subscribers:
            subscription.close()

    # Activity log

    def add_activity(self, task_id: str, kind: ActivityType, summary: str) -> List[ActivityEntry]:
        """Append an activity entry for a task and return the task's entries."""
        entry = ActivityEntry(type=kind, summary=summary)
        with self._lock:
            entries = self._activity.setdefault(task_id, [])
            entries.append(entry)
            return list(entries)

    def get_activity(self, task_id: str) -> List[ActivityEntry]:
        with self._lock:
            return list(self._activity.get(task_id, []))

    def clear_activity(self, task_id: str) -> None:
        with self._lock:
            self._activity.pop(task_id, None)
