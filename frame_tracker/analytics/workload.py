"""
Workload analytics.

``compute_workload`` is a pure projection over a list of orders: it keeps
no state between calls, so two calls over the same orders and the same
``now`` give the same summary.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..config import Settings, get_settings
from ..primitives import as_utc, utc_now
from ..workflow.enums import (
    OrderStatus,
    Priority,
    RiskLevel,
    TERMINAL_STATUSES,
)

# Queue depth per status above which the stage counts as a bottleneck.
BOTTLENECK_THRESHOLDS = {
    OrderStatus.ORDER_PROCESSED: 10,
    OrderStatus.MATERIALS_ORDERED: 8,
    OrderStatus.FRAME_CUT: 5,
}

READY_FOR_WORK_STATUSES = frozenset(
    {OrderStatus.MATERIALS_ARRIVED, OrderStatus.FRAME_CUT, OrderStatus.MAT_CUT}
)

URGENT_ALERT_COUNT = 3
MATERIALS_WAITING_ALERT_COUNT = 5
CAPACITY_ALERT_HOURS = 300.0

_TERMINAL_VALUES = frozenset(status.value for status in TERMINAL_STATUSES)


@dataclass
class WorkloadAlert:
    severity: str
    message: str
    order_count: int


@dataclass
class WorkloadSummary:
    """Snapshot of shop workload at ``generated_at``."""

    total_orders: int
    status_counts: Dict[str, int]
    active_orders: int
    completed_orders: int
    total_estimated_hours: float
    average_complexity: float
    overdue_count: int
    urgent_count: int
    on_time_percentage: int
    risk_level: RiskLevel
    bottlenecks: List[str] = field(default_factory=list)
    alerts: List[WorkloadAlert] = field(default_factory=list)
    generated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        data["generated_at"] = self.generated_at.isoformat() if self.generated_at else None
        return data


def _get(order: Any, name: str) -> Any:
    if isinstance(order, dict):
        return order.get(name)
    return getattr(order, name, None)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return as_utc(value)


def is_overdue(order: Any, now: datetime) -> bool:
    """A non-terminal order whose due date has passed."""
    if _get(order, "status") in _TERMINAL_VALUES:
        return False
    due = _as_datetime(_get(order, "due_date"))
    return due is not None and due < as_utc(now)


def classify_risk(
    active: int, overdue: int, urgent: int, settings: Optional[Settings] = None
) -> RiskLevel:
    """Risk from the overdue share of active orders and the urgent count."""
    settings = settings or get_settings()
    if active == 0:
        return RiskLevel.LOW
    if overdue > settings.overdue_critical_count:
        return RiskLevel.CRITICAL
    overdue_pct = overdue / active * 100
    if overdue_pct > settings.overdue_risk_high_pct or urgent > settings.urgent_high_count:
        return RiskLevel.HIGH
    if overdue_pct > settings.overdue_risk_medium_pct:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _alerts(
    status_counts: Dict[str, int], overdue: int, urgent: int, hours: float
) -> List[WorkloadAlert]:
    alerts = []
    if overdue > 0:
        alerts.append(
            WorkloadAlert(
                "critical",
                f"IMMEDIATE ACTION: {overdue} overdue orders need priority handling",
                overdue,
            )
        )
    if urgent > URGENT_ALERT_COUNT:
        alerts.append(
            WorkloadAlert(
                "high", f"{urgent} urgent orders require immediate attention", urgent
            )
        )
    waiting = status_counts.get(OrderStatus.MATERIALS_ORDERED.value, 0)
    if waiting > MATERIALS_WAITING_ALERT_COUNT:
        alerts.append(
            WorkloadAlert("medium", f"{waiting} orders waiting on materials", waiting)
        )
    ready = sum(status_counts.get(s.value, 0) for s in READY_FOR_WORK_STATUSES)
    if ready > 0:
        alerts.append(
            WorkloadAlert("info", f"{ready} orders ready for production work", ready)
        )
    if hours > CAPACITY_ALERT_HOURS:
        alerts.append(
            WorkloadAlert(
                "high",
                f"{hours:.0f} estimated hours of open work exceeds shop capacity",
                0,
            )
        )
    return alerts


def compute_workload(
    orders: Iterable[Any],
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> WorkloadSummary:
    """Aggregate workload over ``orders`` (ORM rows or their dict form).

    ``status_counts`` has an entry for every status, plus one for each
    legacy status seen, so its values always sum to ``total_orders``.
    Terminal orders count toward totals but not toward hours, overdue or
    urgent figures.
    """
    settings = settings or get_settings()
    now = as_utc(now or utc_now())
    orders = list(orders)

    status_counts: Dict[str, int] = {status.value: 0 for status in OrderStatus}
    active_hours = 0.0
    active_complexity: List[int] = []
    overdue = urgent = completed = 0
    finished = on_time = 0

    for order in orders:
        status = _get(order, "status")
        status_counts[status] = status_counts.get(status, 0) + 1

        if status in _TERMINAL_VALUES:
            completed += 1
        else:
            active_hours += float(_get(order, "estimated_hours") or 0)
            complexity = _get(order, "complexity")
            if complexity is not None:
                active_complexity.append(complexity)
            if _get(order, "priority") == Priority.URGENT.value:
                urgent += 1
            if is_overdue(order, now):
                overdue += 1

        completed_at = _as_datetime(_get(order, "completed_at"))
        if completed_at is not None:
            finished += 1
            due = _as_datetime(_get(order, "due_date"))
            if due is not None and completed_at <= due:
                on_time += 1

    active = len(orders) - completed
    bottlenecks = [
        f"{status.value} backlog ({status_counts[status.value]} orders)"
        for status, limit in BOTTLENECK_THRESHOLDS.items()
        if status_counts[status.value] > limit
    ]

    return WorkloadSummary(
        total_orders=len(orders),
        status_counts=status_counts,
        active_orders=active,
        completed_orders=completed,
        total_estimated_hours=round(active_hours, 2),
        average_complexity=(
            round(sum(active_complexity) / len(active_complexity), 2)
            if active_complexity
            else 0.0
        ),
        overdue_count=overdue,
        urgent_count=urgent,
        on_time_percentage=round(on_time / finished * 100) if finished else 0,
        risk_level=classify_risk(active, overdue, urgent, settings),
        bottlenecks=bottlenecks,
        alerts=_alerts(status_counts, overdue, urgent, active_hours),
        generated_at=now,
    )
