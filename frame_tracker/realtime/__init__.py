"""Real-time change notification."""

from .events import ChangeEvent, ChangeEventType
from .notifier import (
    ChangeChannel,
    InMemoryChannel,
    QueueSubscriber,
    Subscription,
    get_notifier,
    safe_broadcast,
)

__all__ = [
    "ChangeChannel",
    "ChangeEvent",
    "ChangeEventType",
    "InMemoryChannel",
    "QueueSubscriber",
    "Subscription",
    "get_notifier",
    "safe_broadcast",
]
