"""
Vendor purchase orders.

Unordered material lines of orders still in ORDER_PROCESSED are grouped by
supplier into one purchase order each. Marking orders as ordered moves them
to MATERIALS_ORDERED through the transition engine and flags their open
material lines as ordered.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db.models import MaterialModel, OrderModel
from ..db.services import commit_or_raise
from ..primitives import utc_now
from ..realtime.events import ChangeEvent, ChangeEventType
from ..realtime.notifier import ChangeChannel, safe_broadcast
from ..workflow.enums import OrderStatus
from ..workflow.transitions import BatchTransitionResult, TransitionEngine

logger = structlog.get_logger()

# Days from placing a purchase order to delivery, by supplier.
SUPPLIER_LEAD_DAYS: Dict[str, int] = {
    "Roma Moulding": 7,
    "Larson Juhl": 10,
    "Bella Moulding": 5,
    "Crescent": 3,
    "Guardian Glass": 14,
    "Franks Fabrics": 21,
}
DEFAULT_LEAD_DAYS = 7

UNASSIGNED_SUPPLIER = "Unassigned"

_LEAD_DAYS_BY_KEY = {name.lower(): days for name, days in SUPPLIER_LEAD_DAYS.items()}


def lead_time_days(supplier: Optional[str]) -> int:
    """Lead time for ``supplier``; unknown suppliers get the default."""
    if not supplier:
        return DEFAULT_LEAD_DAYS
    return _LEAD_DAYS_BY_KEY.get(supplier.strip().lower(), DEFAULT_LEAD_DAYS)


@dataclass
class PurchaseOrderLine:
    material_id: str
    order_id: str
    tracking_id: str
    customer_name: Optional[str]
    type: str
    subtype: Optional[str]
    quantity: int
    unit: str
    cost: float

    @classmethod
    def from_material(cls, material: MaterialModel) -> "PurchaseOrderLine":
        order = material.order
        return cls(
            material_id=material.id,
            order_id=order.id,
            tracking_id=order.tracking_id,
            customer_name=order.customer.name if order.customer else None,
            type=material.type,
            subtype=material.subtype,
            quantity=material.quantity,
            unit=material.unit,
            cost=float(material.cost or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "order_id": self.order_id,
            "tracking_id": self.tracking_id,
            "customer_name": self.customer_name,
            "type": self.type,
            "subtype": self.subtype,
            "quantity": self.quantity,
            "unit": self.unit,
            "cost": self.cost,
        }


@dataclass
class PurchaseOrder:
    """Everything currently owed to one supplier."""

    supplier: str
    lead_days: int
    estimated_delivery: datetime
    lines: List[PurchaseOrderLine] = field(default_factory=list)

    @property
    def total_amount(self) -> float:
        return round(sum(line.cost for line in self.lines), 2)

    @property
    def order_ids(self) -> List[str]:
        seen: Dict[str, None] = {}
        for line in self.lines:
            seen.setdefault(line.order_id, None)
        return list(seen)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supplier": self.supplier,
            "lead_days": self.lead_days,
            "estimated_delivery": self.estimated_delivery.isoformat(),
            "total_amount": self.total_amount,
            "order_ids": self.order_ids,
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass
class MarkOrderedResult:
    batch: BatchTransitionResult
    materials_marked: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.batch.to_dict(), "materials_marked": self.materials_marked}


class VendorOrderService:
    """Builds supplier purchase orders and records them as placed."""

    def __init__(
        self,
        db: Session,
        notifier: Optional[ChangeChannel] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.settings = settings or get_settings()

    def _open_materials(self, order_ids: Optional[Sequence[str]] = None):
        query = (
            self.db.query(MaterialModel)
            .join(OrderModel, MaterialModel.order_id == OrderModel.id)
            .filter(MaterialModel.ordered.is_(False), MaterialModel.arrived.is_(False))
        )
        if order_ids is None:
            query = query.filter(OrderModel.status == OrderStatus.ORDER_PROCESSED.value)
        else:
            query = query.filter(MaterialModel.order_id.in_(list(order_ids)))
        return query.order_by(OrderModel.due_date, MaterialModel.created_at).all()

    def purchase_orders(self, now: Optional[datetime] = None) -> List[PurchaseOrder]:
        """One purchase order per supplier, sorted by supplier name.

        Lines without a supplier are collected under ``Unassigned``.
        """
        now = now or utc_now()
        grouped: Dict[str, PurchaseOrder] = {}
        for material in self._open_materials():
            supplier = (material.supplier or "").strip() or UNASSIGNED_SUPPLIER
            purchase_order = grouped.get(supplier)
            if purchase_order is None:
                lead_days = lead_time_days(material.supplier)
                purchase_order = grouped[supplier] = PurchaseOrder(
                    supplier=supplier,
                    lead_days=lead_days,
                    estimated_delivery=now + timedelta(days=lead_days),
                )
            purchase_order.lines.append(PurchaseOrderLine.from_material(material))
        return [grouped[name] for name in sorted(grouped, key=str.lower)]

    def mark_ordered(
        self,
        order_ids: Sequence[str],
        acting_user_id: str,
        reason: Optional[str] = None,
    ) -> MarkOrderedResult:
        """Move orders to MATERIALS_ORDERED and flag their open materials.

        The status change goes through ``TransitionEngine.transition_batch``
        so each order gets a history entry; orders the engine rejects keep
        their materials untouched.
        """
        engine = TransitionEngine(self.db, self.notifier, self.settings)
        batch = engine.transition_batch(
            order_ids,
            OrderStatus.MATERIALS_ORDERED,
            acting_user_id,
            reason or "Materials ordered from vendors",
        )
        result = MarkOrderedResult(batch=batch)

        placed = [o.order_id for o in batch.outcomes if o.ok]
        if not placed:
            return result

        now = utc_now()
        touched: Dict[str, None] = {}
        for material in self._open_materials(placed):
            material.ordered = True
            material.ordered_date = now
            material.updated_at = now
            result.materials_marked.append(material.id)
            touched.setdefault(material.order_id, None)

        if result.materials_marked:
            commit_or_raise(self.db, "mark_materials_ordered", order_ids=list(touched))
            safe_broadcast(
                self.notifier,
                ChangeEvent.for_orders(ChangeEventType.MATERIAL_UPDATED, list(touched)),
            )
        logger.info(
            "materials_marked_ordered",
            orders=len(placed),
            materials=len(result.materials_marked),
            failed=batch.failed_ids,
            actor=acting_user_id,
        )
        return result
