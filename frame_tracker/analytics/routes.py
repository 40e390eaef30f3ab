"""
Analytics API routes.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..db.services import OrderService
from ..dependencies import get_order_service
from .workload import compute_workload

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/workload")
async def workload(
    service: OrderService = Depends(get_order_service),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Current workload summary, computed from the store on every call."""
    return compute_workload(service.list(), settings=settings).to_dict()
