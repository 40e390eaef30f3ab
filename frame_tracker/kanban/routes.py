"""
Kanban API routes.

All endpoints are prefixed with /api/kanban.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..db.services import OrderService
from ..dependencies import get_acting_user, get_order_service, get_transition_engine
from ..schemas.orders import KanbanDrop
from ..workflow.transitions import TransitionEngine
from .board import KANBAN_COLUMNS, build_board, drop_order

router = APIRouter(prefix="/api/kanban", tags=["kanban"])


@router.get("/columns")
async def list_columns() -> Dict[str, Any]:
    """The fixed board columns in display order."""
    return {"columns": [column.to_dict() for column in KANBAN_COLUMNS]}


@router.get("/board")
async def get_board(
    service: OrderService = Depends(get_order_service),
) -> Dict[str, Any]:
    """All orders grouped into columns."""
    return build_board(service.list()).to_dict(
        card=lambda order: order.to_dict(include_details=False)
    )


@router.post("/orders/{order_id}/drop")
async def drop(
    order_id: str,
    body: KanbanDrop,
    engine: TransitionEngine = Depends(get_transition_engine),
    acting_user_id: str = Depends(get_acting_user),
) -> Dict[str, Any]:
    """Move a card to another column."""
    result = drop_order(engine, order_id, body.status, acting_user_id, body.reason)
    return {"status": "success", **result.to_dict()}
