"""
Due-date driven priority suggestions.
"""

from datetime import datetime, timedelta
from typing import Optional

from ..primitives import as_utc, utc_now
from .enums import OrderStatus, Priority

# Orders this close to pickup get bumped one level.
LATE_STAGE_STATUSES = frozenset({OrderStatus.PREPPED, OrderStatus.COMPLETED})

_BUMP = {
    Priority.LOW: Priority.MEDIUM,
    Priority.MEDIUM: Priority.HIGH,
}


def suggest_priority(
    due_date: datetime,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Priority:
    """Suggest a priority from how soon an order is due.

    Overdue or due within a day is URGENT, within three days HIGH, within a
    week MEDIUM, otherwise LOW. Late-stage orders move up one level, never
    past HIGH.
    """
    remaining = as_utc(due_date) - as_utc(now or utc_now())

    if remaining <= timedelta(days=1):
        suggested = Priority.URGENT
    elif remaining <= timedelta(days=3):
        suggested = Priority.HIGH
    elif remaining <= timedelta(days=7):
        suggested = Priority.MEDIUM
    else:
        suggested = Priority.LOW

    if status in {s.value for s in LATE_STAGE_STATUSES}:
        suggested = _BUMP.get(suggested, suggested)
    return suggested
