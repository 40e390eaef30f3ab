"""
Frame Tracker

Order tracking for a custom framing shop: audited status transitions,
live change notifications, a kanban board and workload analytics.
"""

from .exceptions import (
    ConflictError,
    FrameTrackerError,
    IntegrationError,
    NotFoundError,
    ValidationError,
)
from .workflow.enums import OrderStatus, OrderType, Priority, RiskLevel

__all__ = [
    "ConflictError",
    "FrameTrackerError",
    "IntegrationError",
    "NotFoundError",
    "OrderStatus",
    "OrderType",
    "Priority",
    "RiskLevel",
    "ValidationError",
]
