"""
Change events pushed to connected clients.

Events say *which* orders changed, never *what* they look like now:
receivers re-query the store instead of trusting a payload.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from ..primitives import generate_ulid, utc_now


class ChangeEventType(str, Enum):
    """Kinds of change a client may want to react to."""

    ORDER_CREATED = "order.created"
    ORDER_UPDATED = "order.updated"
    ORDER_STATUS_CHANGED = "order.status_changed"
    ORDER_BATCH_STATUS_CHANGED = "order.batch_status_changed"
    ORDER_PRIORITY_CHANGED = "order.priority_changed"
    MATERIAL_UPDATED = "material.updated"


@dataclass(frozen=True)
class ChangeEvent:
    """A single broadcast notification."""

    type: ChangeEventType
    order_ids: Tuple[str, ...]
    new_status: Optional[str] = None
    id: str = field(default_factory=generate_ulid)
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def for_orders(
        cls,
        event_type: ChangeEventType,
        order_ids: Iterable[str],
        new_status: Optional[str] = None,
    ) -> "ChangeEvent":
        return cls(type=event_type, order_ids=tuple(order_ids), new_status=new_status)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the event to a JSON-ready dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "order_ids": list(self.order_ids),
            "new_status": self.new_status,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeEvent":
        """Create an event from a dictionary."""
        return cls(
            type=ChangeEventType(data["type"]),
            order_ids=tuple(data.get("order_ids", ())),
            new_status=data.get("new_status"),
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def __str__(self) -> str:
        return f"ChangeEvent(type={self.type.value}, orders={len(self.order_ids)})"
