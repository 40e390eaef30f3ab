"""Vendor purchase orders for materials that still need ordering."""

from .vendors import (
    DEFAULT_LEAD_DAYS,
    SUPPLIER_LEAD_DAYS,
    UNASSIGNED_SUPPLIER,
    MarkOrderedResult,
    PurchaseOrder,
    PurchaseOrderLine,
    VendorOrderService,
    lead_time_days,
)

__all__ = [
    "DEFAULT_LEAD_DAYS",
    "SUPPLIER_LEAD_DAYS",
    "UNASSIGNED_SUPPLIER",
    "MarkOrderedResult",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "VendorOrderService",
    "lead_time_days",
]
