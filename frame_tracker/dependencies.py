"""
FastAPI dependencies shared by the routers.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .db.base import get_db
from .db.services import CustomerService, MaterialService, OrderService
from .procurement.vendors import VendorOrderService
from .realtime.notifier import ChangeChannel, get_notifier
from .workflow.transitions import TransitionEngine


def get_acting_user(
    x_user_id: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> str:
    """Acting user from ``X-User-Id``; the system actor when absent."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return settings.system_actor_id


def get_transition_engine(
    db: Session = Depends(get_db),
    notifier: ChangeChannel = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> TransitionEngine:
    return TransitionEngine(db, notifier, settings)


def get_order_service(
    db: Session = Depends(get_db),
    notifier: ChangeChannel = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> OrderService:
    return OrderService(db, notifier, settings)


def get_customer_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CustomerService:
    return CustomerService(db, settings)


def get_material_service(
    db: Session = Depends(get_db),
    notifier: ChangeChannel = Depends(get_notifier),
) -> MaterialService:
    return MaterialService(db, notifier)


def get_vendor_order_service(
    db: Session = Depends(get_db),
    notifier: ChangeChannel = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> VendorOrderService:
    return VendorOrderService(db, notifier, settings)
