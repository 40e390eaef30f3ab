"""Workload analytics."""

from .workload import (
    BOTTLENECK_THRESHOLDS,
    WorkloadAlert,
    WorkloadSummary,
    classify_risk,
    compute_workload,
    is_overdue,
)

__all__ = [
    "BOTTLENECK_THRESHOLDS",
    "WorkloadAlert",
    "WorkloadSummary",
    "classify_risk",
    "compute_workload",
    "is_overdue",
]
