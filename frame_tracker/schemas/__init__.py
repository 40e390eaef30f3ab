"""Request models for the Frame Tracker API."""

from .orders import (
    BatchPriorityUpdate,
    BatchStatusUpdate,
    CustomerCreate,
    CustomerUpdate,
    KanbanDrop,
    MaterialCreate,
    MaterialUpdate,
    MysteryIntake,
    MysteryItem,
    OrderCreate,
    OrderUpdate,
    StatusUpdate,
    UserCreate,
    normalize_email,
)

__all__ = [
    "BatchPriorityUpdate",
    "BatchStatusUpdate",
    "CustomerCreate",
    "CustomerUpdate",
    "KanbanDrop",
    "MaterialCreate",
    "MaterialUpdate",
    "MysteryIntake",
    "MysteryItem",
    "OrderCreate",
    "OrderUpdate",
    "StatusUpdate",
    "UserCreate",
    "normalize_email",
]
