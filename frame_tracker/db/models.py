"""
SQLAlchemy models for Frame Tracker.

Status, type and priority columns are plain strings so that legacy rows
with values outside today's enums can still be read (and surfaced on the
board) instead of failing to load. Writes are validated upstream.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..primitives import generate_ulid, utc_now
from ..workflow.enums import OrderStatus, ProcurementState
from .base import Base


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class UserModel(Base):
    """Shop staff; referenced by status history ``changed_by``."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=generate_ulid)
    email = Column(String(320), nullable=False, unique=True, index=True)
    first_name = Column(String(128), nullable=True)
    last_name = Column(String(128), nullable=True)
    role = Column(String(16), nullable=False, default="EMPLOYEE")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class CustomerModel(Base):
    """Customer contact record; aggregate root for contact data."""

    __tablename__ = "customers"

    id = Column(String(64), primary_key=True, default=generate_ulid)
    name = Column(String(256), nullable=False)
    email = Column(String(320), nullable=False, unique=True, index=True)
    phone = Column(String(64), nullable=True)
    address = Column(Text, nullable=True)
    preferences = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    orders = relationship(
        "OrderModel",
        back_populates="customer",
        order_by="OrderModel.created_at.desc()",
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "preferences": self.preferences or {},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class OrderModel(Base):
    """A framing order; aggregate root for production tracking."""

    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, default=generate_ulid)
    tracking_id = Column(String(64), nullable=False, unique=True, index=True)
    customer_id = Column(
        String(64), ForeignKey("customers.id"), nullable=False, index=True
    )
    assigned_to_id = Column(String(64), ForeignKey("users.id"), nullable=True)
    invoice_number = Column(String(64), nullable=True)

    order_type = Column(String(16), nullable=False, default="FRAME")
    status = Column(String(32), nullable=False, default="ORDER_PROCESSED", index=True)
    priority = Column(String(16), nullable=False, default="MEDIUM", index=True)
    complexity = Column(Integer, nullable=False, default=5)

    due_date = Column(DateTime(timezone=True), nullable=False, index=True)
    estimated_hours = Column(Float, nullable=False)
    actual_hours = Column(Float, nullable=True)

    price = Column(Float, nullable=False, default=0.0)
    deposit = Column(Float, nullable=False, default=0.0)

    dimensions = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)

    # Artwork handed in by the customer
    artwork_images = Column(JSON, nullable=False, default=list)
    artwork_location = Column(String(256), nullable=True)
    artwork_received = Column(Boolean, nullable=False, default=False)
    artwork_received_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)

    customer = relationship("CustomerModel", back_populates="orders")
    assigned_to = relationship("UserModel")
    materials = relationship(
        "MaterialModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="MaterialModel.created_at",
    )
    status_history = relationship(
        "StatusHistoryModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="StatusHistoryModel.sequence",
    )

    __table_args__ = (
        Index("ix_orders_status_due", "status", "due_date"),
        Index("ix_orders_customer_created", "customer_id", "created_at"),
    )

    @property
    def status_enum(self) -> Optional[OrderStatus]:
        """The status as an enum, or None for a legacy value."""
        try:
            return OrderStatus(self.status)
        except ValueError:
            return None

    def stamp_status_times(self, now: datetime) -> None:
        """Record entry into COMPLETED or PICKED_UP at ``now``.

        A pickup also counts as completion when the order skipped COMPLETED.
        """
        if self.status == OrderStatus.COMPLETED.value:
            self.completed_at = now
        elif self.status == OrderStatus.PICKED_UP.value:
            self.picked_up_at = now
            if self.completed_at is None:
                self.completed_at = now

    def to_dict(self, include_details: bool = True) -> Dict[str, Any]:
        """Convert model to dictionary.

        With ``include_details`` the customer, materials and status history
        are nested, matching what the order-list endpoint returns.
        """
        data: Dict[str, Any] = {
            "id": self.id,
            "tracking_id": self.tracking_id,
            "customer_id": self.customer_id,
            "assigned_to_id": self.assigned_to_id,
            "invoice_number": self.invoice_number,
            "order_type": self.order_type,
            "status": self.status,
            "priority": self.priority,
            "complexity": self.complexity,
            "due_date": _iso(self.due_date),
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "price": self.price,
            "deposit": self.deposit,
            "dimensions": self.dimensions,
            "description": self.description,
            "notes": self.notes,
            "internal_notes": self.internal_notes,
            "artwork_images": self.artwork_images or [],
            "artwork_location": self.artwork_location,
            "artwork_received": self.artwork_received,
            "artwork_received_date": _iso(self.artwork_received_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "completed_at": _iso(self.completed_at),
            "picked_up_at": _iso(self.picked_up_at),
        }
        if include_details:
            data["customer"] = self.customer.to_dict() if self.customer else None
            data["materials"] = [m.to_dict() for m in self.materials]
            data["status_history"] = [h.to_dict() for h in self.status_history]
        return data

    def to_public_dict(self) -> Dict[str, Any]:
        """Customer-facing view without staff-only fields."""
        data = self.to_dict()
        data.pop("internal_notes", None)
        data.pop("assigned_to_id", None)
        return data


class MaterialModel(Base):
    """A bill-of-materials line owned by one order."""

    __tablename__ = "materials"

    id = Column(String(64), primary_key=True, default=generate_ulid)
    order_id = Column(String(64), ForeignKey("orders.id"), nullable=False, index=True)

    type = Column(String(16), nullable=False)
    subtype = Column(String(128), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit = Column(String(32), nullable=False, default="piece")

    # Two independent flags; arrived without ordered is accepted as-is.
    ordered = Column(Boolean, nullable=False, default=False)
    arrived = Column(Boolean, nullable=False, default=False)

    supplier = Column(String(128), nullable=True)
    cost = Column(Float, nullable=True)
    ordered_date = Column(DateTime(timezone=True), nullable=True)
    arrived_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    order = relationship("OrderModel", back_populates="materials")

    @property
    def procurement_state(self) -> ProcurementState:
        if self.arrived:
            return ProcurementState.ARRIVED
        if self.ordered:
            return ProcurementState.ORDERED
        return ProcurementState.NOT_ORDERED

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "order_id": self.order_id,
            "type": self.type,
            "subtype": self.subtype,
            "quantity": self.quantity,
            "unit": self.unit,
            "ordered": self.ordered,
            "arrived": self.arrived,
            "procurement_state": self.procurement_state.value,
            "supplier": self.supplier,
            "cost": self.cost,
            "ordered_date": _iso(self.ordered_date),
            "arrived_date": _iso(self.arrived_date),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class StatusHistoryModel(Base):
    """Append-only record of one status transition.

    ``sequence`` numbers the entries of an order from 1 so the chain can be
    replayed in order even when timestamps collide.
    """

    __tablename__ = "status_history"

    id = Column(String(64), primary_key=True, default=generate_ulid)
    order_id = Column(String(64), ForeignKey("orders.id"), nullable=False)
    sequence = Column(Integer, nullable=False, default=1)

    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=False)
    changed_by = Column(String(64), nullable=False)
    reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    order = relationship("OrderModel", back_populates="status_history")

    __table_args__ = (
        Index("ix_status_history_order_seq", "order_id", "sequence"),
        Index("ix_status_history_created_at", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "order_id": self.order_id,
            "sequence": self.sequence,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "changed_by": self.changed_by,
            "reason": self.reason,
            "created_at": _iso(self.created_at),
        }


__all__: List[str] = [
    "UserModel",
    "CustomerModel",
    "OrderModel",
    "MaterialModel",
    "StatusHistoryModel",
]
