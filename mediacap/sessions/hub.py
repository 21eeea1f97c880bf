"""Per-session broadcast hub with history replay.

A subscriber joining a session first receives every entry already in the
result store (in store order) and then each newly accepted entry exactly
once, in accept order. Replay and registration happen under the same lock
that serializes accept-and-publish, so no entry can fall between the two.
"""

import asyncio
import itertools
import logging
import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional

from ..models.media import MediaReference
from .store import ResultStore

logger = logging.getLogger(__name__)

HEARTBEAT = {"type": "heartbeat"}
_CLOSED = object()
_subscriber_ids = itertools.count(1)


class SubscriberState(str, Enum):
    """Subscriber lifecycle states."""
    CONNECTING = "connecting"
    REPLAYING = "replaying"
    LIVE = "live"
    CLOSED = "closed"


class Subscriber:
    """One live listener attached to a session's hub."""

    def __init__(self, session_id: str, max_queue: int = 1000):
        """Initialize subscriber.

        Args:
            session_id: Session this subscriber listens to
            max_queue: Pending events allowed before the subscriber is dropped
        """
        self.id = next(_subscriber_ids)
        self.session_id = session_id
        self.state = SubscriberState.CONNECTING
        self.delivered = 0
        # Unbounded: the sentinel must always fit; max_queue is enforced in deliver()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._max_queue = max_queue

    @property
    def alive(self) -> bool:
        return self.state != SubscriberState.CLOSED

    def deliver(self, event: Dict[str, Any]) -> bool:
        """Queue an event for this subscriber.

        Returns:
            False if the subscriber is closed or has fallen too far behind
        """
        if not self.alive:
            return False
        if self._queue.qsize() >= self._max_queue:
            logger.warning(f"Subscriber {self.id} fell behind on session {self.session_id}, dropping")
            self.close()
            return False
        self._queue.put_nowait(event)
        self.delivered += 1
        return True

    def close(self) -> None:
        """Mark closed and wake the consumer."""
        if self.state == SubscriberState.CLOSED:
            return
        self.state = SubscriberState.CLOSED
        self._queue.put_nowait(_CLOSED)

    def pending(self) -> int:
        return self._queue.qsize()

    async def events(self, heartbeat_interval: Optional[float] = None) -> AsyncIterator[Dict[str, Any]]:
        """Yield queued events until closed.

        Yields HEARTBEAT every heartbeat_interval seconds on a fixed
        schedule; data events do not postpone it.
        """
        next_heartbeat = time.monotonic() + heartbeat_interval if heartbeat_interval else None
        while True:
            timeout = None
            if next_heartbeat is not None:
                now = time.monotonic()
                if now >= next_heartbeat:
                    next_heartbeat = now + heartbeat_interval
                    if self.alive:
                        yield HEARTBEAT
                    continue
                timeout = next_heartbeat - now

            try:
                item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
            except asyncio.TimeoutError:
                continue

            if item is _CLOSED:
                return
            yield item

    def __repr__(self) -> str:
        return f"Subscriber(id={self.id}, session={self.session_id}, state={self.state.value})"


class BroadcastHub:
    """Publish/subscribe channel for one session."""

    def __init__(self, session_id: str, store: ResultStore, max_queue: int = 1000):
        """Initialize hub.

        Args:
            session_id: Owning session
            store: The session's result store, read for history replay
            max_queue: Per-subscriber pending event limit
        """
        self.session_id = session_id
        self.store = store
        self.max_queue = max_queue
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()
        self._closed = False
        self.published = 0

    @contextmanager
    def serialized(self) -> Iterator[None]:
        """Hold the publish lock; accept-then-publish must run inside it."""
        with self._lock:
            yield

    def subscribe(self) -> Subscriber:
        """Attach a new subscriber, replaying current history.

        Returns:
            Subscriber in LIVE state (or CLOSED if the hub is closed)
        """
        subscriber = Subscriber(self.session_id, max_queue=self.max_queue)
        with self._lock:
            if self._closed:
                subscriber.close()
                return subscriber

            subscriber.state = SubscriberState.REPLAYING
            for entry in self.store.all():
                if not subscriber.deliver(entry.to_event()):
                    return subscriber

            self._subscribers.append(subscriber)
            subscriber.state = SubscriberState.LIVE

        logger.debug(
            f"Subscriber {subscriber.id} live on session {self.session_id} "
            f"after replaying {subscriber.delivered} entries"
        )
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Detach and close a subscriber. Safe to call more than once."""
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)
        subscriber.close()

    def publish(self, entry: MediaReference) -> int:
        """Deliver a newly accepted entry to every live subscriber.

        Returns:
            Number of subscribers that received the entry
        """
        event = entry.to_event()
        delivered = 0
        with self._lock:
            if self._closed:
                return 0
            self.published += 1
            for subscriber in list(self._subscribers):
                if subscriber.deliver(event):
                    delivered += 1
                else:
                    self._subscribers.remove(subscriber)
        return delivered

    def close(self) -> None:
        """Close every subscriber; later subscribe calls get a closed subscriber."""
        with self._lock:
            self._closed = True
            subscribers, self._subscribers = self._subscribers, []
        for subscriber in subscribers:
            subscriber.close()
        logger.debug(f"Hub for session {self.session_id} closed ({len(subscribers)} subscribers)")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def __repr__(self) -> str:
        return (
            f"BroadcastHub(session={self.session_id}, subscribers={self.subscriber_count}, "
            f"published={self.published})"
        )
