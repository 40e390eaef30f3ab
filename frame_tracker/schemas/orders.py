from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    confloat,
    conint,
    constr,
    field_validator,
    model_validator,
)

from ..primitives import as_utc
from ..workflow.enums import (
    MaterialType,
    OrderStatus,
    OrderType,
    Priority,
    UserRole,
    parse_enum,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(value: str) -> str:
    """Trim and lower-case an email, rejecting obviously malformed ones."""
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError(f"invalid email address: {value!r}")
    return email


def _coerce(enum_cls, value):
    if value is None:
        return None
    try:
        return parse_enum(enum_cls, value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"must be one of: {allowed}")


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# ---------------------------------------------------------------------------
# Users and customers
# ---------------------------------------------------------------------------


class UserCreate(_Request):
    """Staff account referenced as an acting user."""

    email: constr(min_length=3, max_length=320)
    first_name: Optional[constr(max_length=128)] = None
    last_name: Optional[constr(max_length=128)] = None
    role: UserRole = UserRole.EMPLOYEE

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, value):
        return _coerce(UserRole, value)


class CustomerCreate(_Request):
    """Customer contact details."""

    name: constr(min_length=1, max_length=256)
    email: constr(min_length=3, max_length=320)
    phone: Optional[constr(max_length=64)] = None
    address: Optional[str] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return normalize_email(value)


class CustomerUpdate(_Request):
    """Partial customer edit; omitted fields are left unchanged."""

    name: Optional[constr(min_length=1, max_length=256)] = None
    email: Optional[constr(min_length=3, max_length=320)] = None
    phone: Optional[constr(max_length=64)] = None
    address: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        return normalize_email(value) if value is not None else None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class OrderCreate(_Request):
    """New framing order. ``tracking_id`` is generated when omitted."""

    customer_id: constr(min_length=1, max_length=64) = Field(alias="customerId")
    tracking_id: Optional[constr(min_length=1, max_length=64)] = Field(
        default=None, alias="trackingId"
    )
    order_type: OrderType = Field(default=OrderType.FRAME, alias="orderType")
    status: OrderStatus = OrderStatus.ORDER_PROCESSED
    priority: Priority = Priority.MEDIUM
    complexity: conint(ge=1, le=10) = 5
    due_date: datetime = Field(alias="dueDate")
    estimated_hours: confloat(gt=0) = Field(alias="estimatedHours")
    price: confloat(ge=0) = 0.0
    deposit: confloat(ge=0) = 0.0
    invoice_number: Optional[constr(max_length=64)] = Field(
        default=None, alias="invoiceNumber"
    )
    assigned_to_id: Optional[constr(max_length=64)] = Field(
        default=None, alias="assignedToId"
    )
    dimensions: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = Field(default=None, alias="internalNotes")
    artwork_location: Optional[constr(max_length=256)] = Field(
        default=None, alias="artworkLocation"
    )

    @field_validator("order_type", mode="before")
    @classmethod
    def parse_order_type(cls, value):
        return _coerce(OrderType, value)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        return _coerce(OrderStatus, value)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, value):
        return _coerce(Priority, value)

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, value):
        return as_utc(value)


# Columns that always hold a value; an explicit null cannot clear them.
_REQUIRED_ORDER_FIELDS = frozenset(
    {
        "order_type",
        "priority",
        "complexity",
        "due_date",
        "estimated_hours",
        "price",
        "deposit",
        "artwork_images",
        "artwork_received",
    }
)


class OrderUpdate(_Request):
    """Direct edit of an order's non-status fields.

    There is no status field: status only changes through the transition
    endpoints so that every change leaves a history entry.
    """

    order_type: Optional[OrderType] = Field(default=None, alias="orderType")
    priority: Optional[Priority] = None
    complexity: Optional[conint(ge=1, le=10)] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    estimated_hours: Optional[confloat(gt=0)] = Field(
        default=None, alias="estimatedHours"
    )
    actual_hours: Optional[confloat(ge=0)] = Field(default=None, alias="actualHours")
    price: Optional[confloat(ge=0)] = None
    deposit: Optional[confloat(ge=0)] = None
    invoice_number: Optional[constr(max_length=64)] = Field(
        default=None, alias="invoiceNumber"
    )
    assigned_to_id: Optional[constr(max_length=64)] = Field(
        default=None, alias="assignedToId"
    )
    dimensions: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = Field(default=None, alias="internalNotes")
    artwork_images: Optional[List[str]] = Field(default=None, alias="artworkImages")
    artwork_location: Optional[constr(max_length=256)] = Field(
        default=None, alias="artworkLocation"
    )
    artwork_received: Optional[bool] = Field(default=None, alias="artworkReceived")

    @field_validator("order_type", mode="before")
    @classmethod
    def parse_order_type(cls, value):
        return _coerce(OrderType, value)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, value):
        return _coerce(Priority, value)

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, value):
        return as_utc(value)

    @model_validator(mode="after")
    def reject_null_required(self):
        cleared = sorted(
            name
            for name in self.model_fields_set & _REQUIRED_ORDER_FIELDS
            if getattr(self, name) is None
        )
        if cleared:
            raise ValueError("fields cannot be cleared: " + ", ".join(cleared))
        return self


class StatusUpdate(_Request):
    """Body of ``PATCH /api/orders/{id}/status``.

    ``status`` stays a string here; the transition engine owns the check so
    that API and CLI callers get the same ValidationError.
    """

    status: constr(min_length=1, max_length=64)
    reason: Optional[constr(max_length=1000)] = None


class BatchStatusUpdate(_Request):
    """Body of ``PATCH /api/orders/batch-status``."""

    order_ids: List[constr(min_length=1, max_length=64)] = Field(
        alias="orderIds", min_length=1
    )
    status: constr(min_length=1, max_length=64)
    reason: Optional[constr(max_length=1000)] = None


class MarkOrdered(_Request):
    """Body of ``POST /api/vendor/mark-ordered``."""

    order_ids: List[constr(min_length=1, max_length=64)] = Field(
        alias="orderIds", min_length=1
    )
    reason: Optional[constr(max_length=1000)] = None


class BatchPriorityUpdate(_Request):
    """Body of ``PATCH /api/orders/batch-priority``."""

    order_ids: List[constr(min_length=1, max_length=64)] = Field(
        alias="orderIds", min_length=1
    )
    priority: Priority

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, value):
        return _coerce(Priority, value)


class MysteryItem(_Request):
    """One unclaimed item pulled from a mystery drawer."""

    tracking_id: constr(min_length=1, max_length=64) = Field(alias="trackingId")
    description: Optional[str] = None
    location: Optional[constr(max_length=256)] = None
    invoice_number: Optional[constr(max_length=64)] = Field(
        default=None, alias="invoiceNumber"
    )


class MysteryIntake(_Request):
    """Body of ``POST /api/orders/mystery``."""

    items: List[MysteryItem] = Field(min_length=1)


class KanbanDrop(_Request):
    """Body of ``POST /api/kanban/orders/{id}/drop``."""

    status: constr(min_length=1, max_length=64)
    reason: Optional[constr(max_length=1000)] = None


# ---------------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------------


class MaterialCreate(_Request):
    """Bill-of-materials line for an order."""

    type: MaterialType
    subtype: Optional[constr(max_length=128)] = None
    quantity: conint(ge=1) = 1
    unit: constr(min_length=1, max_length=32) = "piece"
    ordered: bool = False
    arrived: bool = False
    supplier: Optional[constr(max_length=128)] = None
    cost: Optional[confloat(ge=0)] = None

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, value):
        return _coerce(MaterialType, value)


class MaterialUpdate(_Request):
    """Partial material edit; flags are independent."""

    subtype: Optional[constr(max_length=128)] = None
    quantity: Optional[conint(ge=1)] = None
    unit: Optional[constr(min_length=1, max_length=32)] = None
    ordered: Optional[bool] = None
    arrived: Optional[bool] = None
    supplier: Optional[constr(max_length=128)] = None
    cost: Optional[confloat(ge=0)] = None

    @model_validator(mode="after")
    def require_change(self) -> "MaterialUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        return self
