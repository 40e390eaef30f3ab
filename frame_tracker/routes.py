"""
Order management API routes.

Customers, orders, materials and the customer-facing tracking portal.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .db.services import CustomerService, MaterialService, OrderService, UserService
from .db.base import get_db
from .dependencies import (
    get_acting_user,
    get_customer_service,
    get_material_service,
    get_order_service,
    get_transition_engine,
)
from .exceptions import NotFoundError
from .schemas.orders import (
    BatchPriorityUpdate,
    BatchStatusUpdate,
    CustomerCreate,
    CustomerUpdate,
    MaterialCreate,
    MaterialUpdate,
    MysteryIntake,
    OrderCreate,
    OrderUpdate,
    StatusUpdate,
    UserCreate,
)
from .workflow.transitions import TransitionEngine

router = APIRouter(prefix="/api", tags=["orders"])


# =============================================================================
# User Endpoints
# =============================================================================


@router.get("/users")
async def list_users(db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    """Staff accounts usable as ``X-User-Id``."""
    return [u.to_dict() for u in UserService(db).list()]


@router.post("/users", status_code=201)
async def create_user(user: UserCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    db_user = UserService(db).create(user)
    return {"status": "success", "user": db_user.to_dict()}


# =============================================================================
# Customer Endpoints
# =============================================================================


@router.get("/customers")
async def list_customers(
    search: Optional[str] = Query(None, description="Name or email fragment"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: CustomerService = Depends(get_customer_service),
) -> List[Dict[str, Any]]:
    """List customers."""
    return [c.to_dict() for c in service.list(search=search, limit=limit, offset=offset)]


@router.post("/customers", status_code=201)
async def create_customer(
    customer: CustomerCreate,
    service: CustomerService = Depends(get_customer_service),
) -> Dict[str, Any]:
    """Create a customer. Duplicate emails are rejected with 409."""
    db_customer = service.create(customer)
    return {"status": "success", "customer": db_customer.to_dict()}


@router.get("/customers/{customer_id}")
async def get_customer(
    customer_id: str,
    service: CustomerService = Depends(get_customer_service),
) -> Dict[str, Any]:
    customer = service.get(customer_id)
    if not customer:
        raise NotFoundError("customer", customer_id)
    return customer.to_dict()


@router.patch("/customers/{customer_id}")
async def update_customer(
    customer_id: str,
    update: CustomerUpdate,
    service: CustomerService = Depends(get_customer_service),
) -> Dict[str, Any]:
    db_customer = service.update(customer_id, update)
    return {"status": "success", "customer": db_customer.to_dict()}


@router.get("/customers/{customer_id}/orders")
async def list_customer_orders(
    customer_id: str,
    service: OrderService = Depends(get_order_service),
) -> List[Dict[str, Any]]:
    """Orders for one customer, newest first."""
    return [o.to_dict() for o in service.list_for_customer(customer_id)]


# =============================================================================
# Order Endpoints
# =============================================================================


@router.get("/orders")
async def list_orders(
    status: Optional[str] = Query(None, description="Filter by status"),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    priority: Optional[str] = Query(None, description="Filter by priority"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: OrderService = Depends(get_order_service),
) -> List[Dict[str, Any]]:
    """List orders with customer, materials and history."""
    orders = service.list(
        status=status.upper() if status else None,
        customer_id=customer_id,
        priority=priority.upper() if priority else None,
        limit=limit,
        offset=offset,
    )
    return [o.to_dict() for o in orders]


@router.post("/orders", status_code=201)
async def create_order(
    order: OrderCreate,
    service: OrderService = Depends(get_order_service),
    acting_user_id: str = Depends(get_acting_user),
) -> Dict[str, Any]:
    """Create an order; its first history entry is written with it."""
    db_order = service.create(order, acting_user_id)
    return {"status": "success", "order": db_order.to_dict()}


@router.patch("/orders/batch-status")
async def batch_update_status(
    body: BatchStatusUpdate,
    engine: TransitionEngine = Depends(get_transition_engine),
    acting_user_id: str = Depends(get_acting_user),
) -> Dict[str, Any]:
    """Move many orders to one status; each order reports its own outcome."""
    result = engine.transition_batch(
        body.order_ids, body.status, acting_user_id, body.reason
    )
    return {"status": "success", **result.to_dict()}


@router.patch("/orders/batch-priority")
async def batch_update_priority(
    body: BatchPriorityUpdate,
    service: OrderService = Depends(get_order_service),
) -> Dict[str, Any]:
    outcomes = service.set_priority_batch(body.order_ids, body.priority)
    return {
        "status": "success",
        "priority": body.priority.value,
        "updated_count": sum(1 for o in outcomes if o["changed"]),
        "outcomes": outcomes,
    }


@router.post("/orders/auto-assign-priorities")
async def auto_assign_priorities(
    service: OrderService = Depends(get_order_service),
) -> Dict[str, Any]:
    """Re-derive every open order's priority from its due date."""
    updates = service.auto_assign_priorities()
    return {"status": "success", "updated_count": len(updates), "updates": updates}


@router.post("/orders/mystery", status_code=201)
async def create_mystery_orders(
    body: MysteryIntake,
    service: OrderService = Depends(get_order_service),
    acting_user_id: str = Depends(get_acting_user),
) -> Dict[str, Any]:
    """Register unclaimed mystery-drawer items. Known tracking ids are skipped."""
    created, skipped = service.create_mystery_orders(body.items, acting_user_id)
    return {
        "status": "success",
        "message": f"Created {len(created)} mystery orders",
        "created": [o.to_dict(include_details=False) for o in created],
        "skipped": skipped,
    }


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
) -> Dict[str, Any]:
    return service.require(order_id).to_dict()


@router.patch("/orders/{order_id}")
async def update_order(
    order_id: str,
    update: OrderUpdate,
    service: OrderService = Depends(get_order_service),
) -> Dict[str, Any]:
    """Edit order fields. Status changes use the ``/status`` endpoint."""
    db_order = service.update(order_id, update)
    return {"status": "success", "order": db_order.to_dict()}


@router.patch("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    body: StatusUpdate,
    engine: TransitionEngine = Depends(get_transition_engine),
    acting_user_id: str = Depends(get_acting_user),
) -> Dict[str, Any]:
    """Move an order to a new status and record the change."""
    result = engine.transition(order_id, body.status, acting_user_id, body.reason)
    return {"status": "success", **result.to_dict()}


@router.get("/orders/{order_id}/history")
async def get_order_history(
    order_id: str,
    service: OrderService = Depends(get_order_service),
) -> List[Dict[str, Any]]:
    """Status history, oldest first."""
    return [h.to_dict() for h in service.history(order_id)]


# =============================================================================
# Material Endpoints
# =============================================================================


@router.get("/orders/{order_id}/materials")
async def list_materials(
    order_id: str,
    service: MaterialService = Depends(get_material_service),
) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in service.list_for_order(order_id)]


@router.post("/orders/{order_id}/materials", status_code=201)
async def create_material(
    order_id: str,
    material: MaterialCreate,
    service: MaterialService = Depends(get_material_service),
) -> Dict[str, Any]:
    db_material = service.create(order_id, material)
    return {"status": "success", "material": db_material.to_dict()}


@router.patch("/materials/{material_id}")
async def update_material(
    material_id: str,
    update: MaterialUpdate,
    service: MaterialService = Depends(get_material_service),
) -> Dict[str, Any]:
    db_material = service.update(material_id, update)
    return {"status": "success", "material": db_material.to_dict()}


# =============================================================================
# Customer Portal
# =============================================================================

portal_router = APIRouter(prefix="/api/customer", tags=["customer-portal"])


@portal_router.get("/track/{tracking_id}")
async def track_order(
    tracking_id: str,
    service: OrderService = Depends(get_order_service),
) -> Dict[str, Any]:
    """Public order lookup by tracking id."""
    order = service.get_by_tracking_id(tracking_id.strip())
    if not order:
        raise NotFoundError("order", tracking_id)
    return order.to_public_dict()


@portal_router.get("/orders/{email}")
async def customer_orders(
    email: str,
    service: OrderService = Depends(get_order_service),
) -> List[Dict[str, Any]]:
    """Public list of a customer's orders by email."""
    return [o.to_public_dict() for o in service.list_for_email(email)]
