"""
Order workflow: status enums, pipeline tables and priority rules.

The transition engine lives in ``frame_tracker.workflow.transitions``; it
is not re-exported here because it depends on the database layer.
"""

from .enums import (
    IN_PROGRESS_STATUSES,
    LEGAL_SUCCESSORS,
    PIPELINE,
    PRIORITY_URGENCY,
    STATUS_LABELS,
    TERMINAL_STATUSES,
    MaterialType,
    OrderStatus,
    OrderType,
    Priority,
    ProcurementState,
    RiskLevel,
    UserRole,
    parse_enum,
    require_exhaustive,
)
from .priority import suggest_priority

__all__ = [
    "IN_PROGRESS_STATUSES",
    "LEGAL_SUCCESSORS",
    "PIPELINE",
    "PRIORITY_URGENCY",
    "STATUS_LABELS",
    "TERMINAL_STATUSES",
    "MaterialType",
    "OrderStatus",
    "OrderType",
    "Priority",
    "ProcurementState",
    "RiskLevel",
    "UserRole",
    "parse_enum",
    "require_exhaustive",
    "suggest_priority",
]
