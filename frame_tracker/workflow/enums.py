"""
Canonical enums for the framing shop workflow.

Every table keyed by one of these enums is checked with
``require_exhaustive`` at import time, so adding a member without
updating the tables fails loudly instead of falling back to "Unknown".
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Tuple, Type


class OrderStatus(str, Enum):
    """Production stages an order moves through."""

    MYSTERY_UNCLAIMED = "MYSTERY_UNCLAIMED"
    ORDER_PROCESSED = "ORDER_PROCESSED"
    MATERIALS_ORDERED = "MATERIALS_ORDERED"
    MATERIALS_ARRIVED = "MATERIALS_ARRIVED"
    FRAME_CUT = "FRAME_CUT"
    MAT_CUT = "MAT_CUT"
    PREPPED = "PREPPED"
    COMPLETED = "COMPLETED"
    DELAYED = "DELAYED"
    PICKED_UP = "PICKED_UP"


class OrderType(str, Enum):
    """Kinds of framing work."""

    FRAME = "FRAME"
    MAT = "MAT"
    SHADOWBOX = "SHADOWBOX"


class Priority(str, Enum):
    """Order priority levels."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MaterialType(str, Enum):
    """Bill-of-materials line types."""

    FRAME = "FRAME"
    MAT = "MAT"
    GLASS = "GLASS"
    HARDWARE = "HARDWARE"
    OTHER = "OTHER"


class ProcurementState(str, Enum):
    """Derived view over a material's ordered/arrived flags."""

    NOT_ORDERED = "NOT_ORDERED"
    ORDERED = "ORDERED"
    ARRIVED = "ARRIVED"


class UserRole(str, Enum):
    """Staff roles."""

    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    VIEWER = "VIEWER"


class RiskLevel(str, Enum):
    """Workload risk classification."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


def require_exhaustive(
    mapping: Mapping[Any, Any], enum_cls: Type[Enum], name: str
) -> Mapping[Any, Any]:
    """Raise at import time if ``mapping`` does not cover every member."""
    missing = [member.value for member in enum_cls if member not in mapping]
    if missing:
        raise RuntimeError(
            f"{name} is missing entries for {enum_cls.__name__}: {', '.join(missing)}"
        )
    return mapping


def parse_enum(enum_cls: Type[Enum], value: Any) -> Enum:
    """Coerce ``value`` into ``enum_cls``; raises ValueError when unknown."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        return enum_cls(value.strip().upper())
    return enum_cls(value)


STATUS_LABELS: Dict[OrderStatus, str] = require_exhaustive(
    {
        OrderStatus.MYSTERY_UNCLAIMED: "Mystery/Unclaimed",
        OrderStatus.ORDER_PROCESSED: "Order Processed",
        OrderStatus.MATERIALS_ORDERED: "Materials Ordered",
        OrderStatus.MATERIALS_ARRIVED: "Materials Arrived",
        OrderStatus.FRAME_CUT: "Frame Cut",
        OrderStatus.MAT_CUT: "Mat Cut",
        OrderStatus.PREPPED: "Prepped",
        OrderStatus.COMPLETED: "Completed",
        OrderStatus.DELAYED: "Delayed",
        OrderStatus.PICKED_UP: "Picked Up",
    },
    OrderStatus,
    "STATUS_LABELS",
)

PRIORITY_URGENCY: Dict[Priority, int] = require_exhaustive(
    {
        Priority.LOW: 1,
        Priority.MEDIUM: 2,
        Priority.HIGH: 3,
        Priority.URGENT: 4,
    },
    Priority,
    "PRIORITY_URGENCY",
)

# Orders in these states no longer count toward workload or overdue totals.
TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.PICKED_UP}
)

PIPELINE: Tuple[OrderStatus, ...] = (
    OrderStatus.MYSTERY_UNCLAIMED,
    OrderStatus.ORDER_PROCESSED,
    OrderStatus.MATERIALS_ORDERED,
    OrderStatus.MATERIALS_ARRIVED,
    OrderStatus.FRAME_CUT,
    OrderStatus.MAT_CUT,
    OrderStatus.PREPPED,
    OrderStatus.COMPLETED,
    OrderStatus.PICKED_UP,
)

IN_PROGRESS_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {
        OrderStatus.ORDER_PROCESSED,
        OrderStatus.MATERIALS_ORDERED,
        OrderStatus.MATERIALS_ARRIVED,
        OrderStatus.FRAME_CUT,
        OrderStatus.MAT_CUT,
        OrderStatus.PREPPED,
    }
)


def _legal_successors() -> Dict[OrderStatus, FrozenSet[OrderStatus]]:
    successors: Dict[OrderStatus, FrozenSet[OrderStatus]] = {}
    for index, status in enumerate(PIPELINE):
        following = PIPELINE[index + 1 : index + 2]
        allowed = set(following)
        if status in IN_PROGRESS_STATUSES:
            allowed.add(OrderStatus.DELAYED)
        successors[status] = frozenset(allowed)
    # A delayed order resumes at any in-progress stage.
    successors[OrderStatus.DELAYED] = IN_PROGRESS_STATUSES
    return successors


# Only consulted when the strict pipeline is enabled.
LEGAL_SUCCESSORS: Dict[OrderStatus, FrozenSet[OrderStatus]] = require_exhaustive(
    _legal_successors(), OrderStatus, "LEGAL_SUCCESSORS"
)
