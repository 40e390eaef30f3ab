"""
Small helpers shared across the store, workflow and analytics layers.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional

from ulid import ULID


def generate_ulid() -> str:
    """Generate a ULID for record ids.

    ULIDs are lexicographically sortable and globally unique.
    """
    return str(ULID())


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are treated as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_tracking_id(now: Optional[datetime] = None) -> str:
    """Human-facing order id in the shop's ``JF<year><6 digits>`` format."""
    now = now or utc_now()
    return f"JF{now.year}{secrets.randbelow(1_000_000):06d}"
