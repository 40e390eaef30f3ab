"""
Database package for Frame Tracker.
"""

from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import (
    CustomerModel,
    MaterialModel,
    OrderModel,
    StatusHistoryModel,
    UserModel,
)

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "CustomerModel",
    "MaterialModel",
    "OrderModel",
    "StatusHistoryModel",
    "UserModel",
]
