"""
In-process publish/subscribe for change events.

Delivery is best-effort and at-most-once: there is no replay, a client that
was not subscribed when an event fired never sees it, and a failing handler
is logged and skipped. Broadcast never raises into the caller, so a failed
notification can never undo a committed write.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

import structlog

from .events import ChangeEvent

logger = structlog.get_logger()

EventHandler = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by ``subscribe``; closing it stops delivery."""

    def __init__(self, channel: "ChangeChannel", token: int):
        self._channel = channel
        self._token = token
        self.closed = False

    def close(self) -> None:
        if not self.closed:
            self._channel._unsubscribe(self._token)
            self.closed = True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ChangeChannel(ABC):
    """Abstract fan-out channel for change events."""

    @abstractmethod
    def broadcast(self, event: ChangeEvent) -> int:
        """Deliver ``event`` to current subscribers; returns how many got it."""

    @abstractmethod
    def subscribe(self, handler: EventHandler) -> Subscription:
        """Register ``handler`` for future events."""

    @abstractmethod
    def _unsubscribe(self, token: int) -> None:
        pass

    @property
    @abstractmethod
    def subscriber_count(self) -> int:
        pass


class InMemoryChannel(ChangeChannel):
    """Thread-safe channel for a single process."""

    def __init__(self) -> None:
        self._handlers: Dict[int, EventHandler] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    def broadcast(self, event: ChangeEvent) -> int:
        with self._lock:
            handlers = list(self._handlers.values())

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "event_delivery_failed",
                    event_type=event.type.value,
                    event_id=event.id,
                    error=str(e),
                )

        logger.debug(
            "event_broadcast",
            event_type=event.type.value,
            order_ids=list(event.order_ids),
            subscribers=len(handlers),
            delivered=delivered,
        )
        return delivered

    def subscribe(self, handler: EventHandler) -> Subscription:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._handlers[token] = handler
        return Subscription(self, token)

    def _unsubscribe(self, token: int) -> None:
        with self._lock:
            self._handlers.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)


class QueueSubscriber:
    """Handler that hands events to an asyncio queue owned by ``loop``.

    Broadcasts may come from any thread (sync request handlers run in a
    worker pool), so the put is scheduled on the queue's own loop. A full
    queue drops the event for this subscriber only.
    """

    def __init__(
        self,
        queue: "asyncio.Queue[ChangeEvent]",
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.queue = queue
        self.loop = loop or asyncio.get_running_loop()
        self.dropped = 0

    def _put(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "event_dropped", event_type=event.type.value, dropped=self.dropped
            )

    def __call__(self, event: ChangeEvent) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            self._put(event)
        else:
            self.loop.call_soon_threadsafe(self._put, event)


_notifier: Optional[ChangeChannel] = None


def get_notifier() -> ChangeChannel:
    """Process-wide channel; FastAPI dependency."""
    global _notifier
    if _notifier is None:
        _notifier = InMemoryChannel()
    return _notifier


def safe_broadcast(notifier: Optional[ChangeChannel], event: ChangeEvent) -> int:
    """Broadcast through ``notifier`` without letting anything escape."""
    if notifier is None:
        return 0
    try:
        return notifier.broadcast(event)
    except Exception as e:
        logger.error("event_broadcast_failed", event_type=event.type.value, error=str(e))
        return 0
