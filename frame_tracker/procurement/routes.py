"""
Vendor procurement API routes.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..dependencies import get_acting_user, get_vendor_order_service
from ..schemas.orders import MarkOrdered
from .vendors import VendorOrderService

router = APIRouter(prefix="/api/vendor", tags=["procurement"])


@router.get("/orders")
async def list_purchase_orders(
    service: VendorOrderService = Depends(get_vendor_order_service),
) -> Dict[str, Any]:
    """Open purchase orders grouped by supplier."""
    purchase_orders = service.purchase_orders()
    return {
        "status": "success",
        "total_amount": round(sum(po.total_amount for po in purchase_orders), 2),
        "purchase_orders": [po.to_dict() for po in purchase_orders],
    }


@router.post("/mark-ordered")
async def mark_ordered(
    body: MarkOrdered,
    service: VendorOrderService = Depends(get_vendor_order_service),
    acting_user_id: str = Depends(get_acting_user),
) -> Dict[str, Any]:
    """Record purchase orders as placed for the given orders."""
    result = service.mark_ordered(body.order_ids, acting_user_id, body.reason)
    return {"status": "success", **result.to_dict()}
