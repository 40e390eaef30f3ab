"""
Database services for Frame Tracker.

Services own reads and direct edits of the order record store. Status
changes are the exception: they go through
``frame_tracker.workflow.transitions.TransitionEngine`` so that every change
is paired with a history entry. The only status written here is the
initial one when an order is created.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..exceptions import ConflictError, IntegrationError, NotFoundError, ValidationError
from ..primitives import generate_tracking_id, utc_now
from ..realtime.events import ChangeEvent, ChangeEventType
from ..realtime.notifier import ChangeChannel, safe_broadcast
from ..schemas.orders import (
    CustomerCreate,
    CustomerUpdate,
    MaterialCreate,
    MaterialUpdate,
    MysteryItem,
    OrderCreate,
    OrderUpdate,
    UserCreate,
    normalize_email,
)
from ..workflow.enums import OrderStatus, OrderType, Priority
from ..workflow.priority import suggest_priority
from .models import (
    CustomerModel,
    MaterialModel,
    OrderModel,
    StatusHistoryModel,
    UserModel,
)

logger = structlog.get_logger()

TRACKING_ID_ATTEMPTS = 5


def commit_or_raise(db: Session, action: str, **context: Any) -> None:
    """Commit the session, rolling back and mapping store failures.

    Unique-constraint violations surface as ConflictError; anything else
    the store rejects becomes IntegrationError.
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("store_conflict", action=action, error=str(e.orig), **context)
        raise ConflictError(f"{action} conflicts with an existing record", context)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("store_write_failed", action=action, error=str(e), **context)
        raise IntegrationError(f"{action} could not be saved", context)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def dedupe(ids: Iterable[str]) -> List[str]:
    """Drop repeated ids, keeping first-seen order."""
    seen = set()
    unique = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


class UserService:
    """Service for staff accounts."""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def create(self, user: UserCreate) -> UserModel:
        """Create a staff account."""
        if self.db.query(UserModel).filter(UserModel.email == user.email).first():
            raise ConflictError(
                f"user with email '{user.email}' already exists", {"email": user.email}
            )
        db_user = UserModel(
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role.value,
        )
        self.db.add(db_user)
        commit_or_raise(self.db, "create_user", email=user.email)
        self.db.refresh(db_user)
        logger.info("user_created", user_id=db_user.id, role=db_user.role)
        return db_user

    def get(self, user_id: str) -> Optional[UserModel]:
        """Get a user by ID."""
        return self.db.query(UserModel).filter(UserModel.id == user_id).first()

    def list(self) -> List[UserModel]:
        return self.db.query(UserModel).order_by(UserModel.email).all()

    def is_valid_actor(self, actor_id: Optional[str]) -> bool:
        """The system actor is always valid; anyone else must be a user."""
        if not actor_id:
            return False
        if actor_id == self.settings.system_actor_id:
            return True
        return self.get(actor_id) is not None

    def require_actor(self, actor_id: Optional[str]) -> str:
        if not self.is_valid_actor(actor_id):
            raise ValidationError(
                f"unknown acting user '{actor_id}'", {"acting_user_id": actor_id}
            )
        return actor_id


class CustomerService:
    """Service for customer records."""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def create(self, customer: CustomerCreate) -> CustomerModel:
        """Create a customer; emails are unique after normalization."""
        if self.get_by_email(customer.email):
            raise ConflictError(
                f"customer with email '{customer.email}' already exists",
                {"email": customer.email},
            )
        db_customer = CustomerModel(
            name=customer.name,
            email=customer.email,
            phone=customer.phone,
            address=customer.address,
            preferences=customer.preferences,
        )
        self.db.add(db_customer)
        commit_or_raise(self.db, "create_customer", email=customer.email)
        self.db.refresh(db_customer)
        logger.info("customer_created", customer_id=db_customer.id)
        return db_customer

    def get(self, customer_id: str) -> Optional[CustomerModel]:
        """Get a customer by ID."""
        return (
            self.db.query(CustomerModel).filter(CustomerModel.id == customer_id).first()
        )

    def get_by_email(self, email: str) -> Optional[CustomerModel]:
        """Get a customer by email, ignoring case and surrounding spaces."""
        return (
            self.db.query(CustomerModel)
            .filter(CustomerModel.email == email.strip().lower())
            .first()
        )

    def list(
        self, search: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[CustomerModel]:
        """List customers, optionally filtered by a name or email fragment."""
        query = self.db.query(CustomerModel)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                func.lower(CustomerModel.name).like(pattern)
                | CustomerModel.email.like(pattern)
            )
        return query.order_by(CustomerModel.name).offset(offset).limit(limit).all()

    def update(self, customer_id: str, update: CustomerUpdate) -> CustomerModel:
        customer = self.get(customer_id)
        if not customer:
            raise NotFoundError("customer", customer_id)

        changes = update.model_dump(exclude_unset=True)
        new_email = changes.get("email")
        if new_email and new_email != customer.email and self.get_by_email(new_email):
            raise ConflictError(
                f"customer with email '{new_email}' already exists", {"email": new_email}
            )
        for name, value in changes.items():
            if value is None and name in ("name", "email", "preferences"):
                continue
            setattr(customer, name, value)
        customer.updated_at = utc_now()

        commit_or_raise(self.db, "update_customer", customer_id=customer_id)
        self.db.refresh(customer)
        return customer

    def get_or_create_mystery_customer(self) -> CustomerModel:
        """Placeholder customer that owns unclaimed mystery-drawer items."""
        email = self.settings.mystery_customer_email
        customer = self.get_by_email(email)
        if customer:
            return customer
        return self.create(
            CustomerCreate(name=self.settings.mystery_customer_name, email=email)
        )


class OrderService:
    """Service for orders, their materials and their history."""

    def __init__(
        self,
        db: Session,
        notifier: Optional[ChangeChannel] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.users = UserService(db, self.settings)
        self.customers = CustomerService(db, self.settings)

    # -- reads ---------------------------------------------------------------

    def get(self, order_id: str) -> Optional[OrderModel]:
        """Get an order by ID."""
        return self.db.query(OrderModel).filter(OrderModel.id == order_id).first()

    def require(self, order_id: str) -> OrderModel:
        order = self.get(order_id)
        if not order:
            raise NotFoundError("order", order_id)
        return order

    def get_by_tracking_id(self, tracking_id: str) -> Optional[OrderModel]:
        return (
            self.db.query(OrderModel)
            .filter(OrderModel.tracking_id == tracking_id)
            .first()
        )

    def list(
        self,
        status: Optional[str] = None,
        customer_id: Optional[str] = None,
        priority: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[OrderModel]:
        """Get orders with optional filtering, newest first."""
        query = self.db.query(OrderModel)

        if status:
            query = query.filter(OrderModel.status == status)
        if customer_id:
            query = query.filter(OrderModel.customer_id == customer_id)
        if priority:
            query = query.filter(OrderModel.priority == priority)

        query = query.order_by(desc(OrderModel.created_at)).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def list_for_customer(self, customer_id: str) -> List[OrderModel]:
        if not self.customers.get(customer_id):
            raise NotFoundError("customer", customer_id)
        return self.list(customer_id=customer_id)

    def list_for_email(self, email: str) -> List[OrderModel]:
        """Orders belonging to the customer with ``email``."""
        try:
            normalized = normalize_email(email)
        except ValueError as e:
            raise ValidationError(str(e), {"email": email})
        customer = self.customers.get_by_email(normalized)
        if not customer:
            raise NotFoundError("customer", normalized)
        return self.list(customer_id=customer.id)

    def history(self, order_id: str) -> List[StatusHistoryModel]:
        """Status history of an order, oldest first."""
        self.require(order_id)
        return (
            self.db.query(StatusHistoryModel)
            .filter(StatusHistoryModel.order_id == order_id)
            .order_by(StatusHistoryModel.sequence, StatusHistoryModel.created_at)
            .all()
        )

    # -- writes --------------------------------------------------------------

    def _new_tracking_id(self) -> str:
        for _ in range(TRACKING_ID_ATTEMPTS):
            candidate = generate_tracking_id()
            if not self.get_by_tracking_id(candidate):
                return candidate
        raise ConflictError("could not allocate a unique tracking id")

    def _check_assignee(self, assigned_to_id: Optional[str]) -> None:
        if assigned_to_id and not self.users.get(assigned_to_id):
            raise ValidationError(
                f"unknown assignee '{assigned_to_id}'",
                {"assigned_to_id": assigned_to_id},
            )

    def _new_order(
        self, fields: Dict[str, Any], acting_user_id: str, reason: str
    ) -> OrderModel:
        """Stage an order together with its first history entry."""
        now = utc_now()
        db_order = OrderModel(created_at=now, updated_at=now, **fields)
        db_order.stamp_status_times(now)
        db_order.status_history.append(
            StatusHistoryModel(
                sequence=1,
                from_status=None,
                to_status=db_order.status,
                changed_by=acting_user_id,
                reason=reason,
                created_at=now,
            )
        )
        self.db.add(db_order)
        return db_order

    def create(self, order: OrderCreate, acting_user_id: str) -> OrderModel:
        """Create an order and its initial history entry in one commit."""
        self.users.require_actor(acting_user_id)
        if not self.customers.get(order.customer_id):
            raise NotFoundError("customer", order.customer_id)
        self._check_assignee(order.assigned_to_id)

        if order.tracking_id:
            if self.get_by_tracking_id(order.tracking_id):
                raise ConflictError(
                    f"tracking id '{order.tracking_id}' already exists",
                    {"tracking_id": order.tracking_id},
                )
            tracking_id = order.tracking_id
        else:
            tracking_id = self._new_tracking_id()

        fields = order.model_dump(exclude={"tracking_id"})
        fields = {name: _enum_value(value) for name, value in fields.items()}
        fields["tracking_id"] = tracking_id

        db_order = self._new_order(fields, acting_user_id, "Order created")
        commit_or_raise(self.db, "create_order", tracking_id=tracking_id)
        self.db.refresh(db_order)

        logger.info(
            "order_created",
            order_id=db_order.id,
            tracking_id=tracking_id,
            status=db_order.status,
            actor=acting_user_id,
        )
        safe_broadcast(
            self.notifier,
            ChangeEvent.for_orders(
                ChangeEventType.ORDER_CREATED, [db_order.id], db_order.status
            ),
        )
        return db_order

    def update(self, order_id: str, update: OrderUpdate) -> OrderModel:
        """Apply direct field edits. Never touches status."""
        db_order = self.require(order_id)
        changes = update.model_dump(exclude_unset=True)
        if "assigned_to_id" in changes:
            self._check_assignee(changes["assigned_to_id"])

        now = utc_now()
        for name, value in changes.items():
            setattr(db_order, name, _enum_value(value))
        if changes.get("artwork_received") and not db_order.artwork_received_date:
            db_order.artwork_received_date = now
        db_order.updated_at = now

        commit_or_raise(self.db, "update_order", order_id=order_id)
        self.db.refresh(db_order)
        logger.info("order_updated", order_id=order_id, fields=sorted(changes))
        safe_broadcast(
            self.notifier,
            ChangeEvent.for_orders(ChangeEventType.ORDER_UPDATED, [order_id]),
        )
        return db_order

    def create_mystery_orders(
        self,
        items: Sequence[MysteryItem],
        acting_user_id: str,
        now: Optional[datetime] = None,
    ) -> Tuple[List[OrderModel], List[str]]:
        """Register unclaimed drawer items as orders.

        Idempotent on tracking id: items already present are skipped and
        returned in the second element.
        """
        self.users.require_actor(acting_user_id)
        customer = self.customers.get_or_create_mystery_customer()
        now = now or utc_now()
        due_date = now + timedelta(days=self.settings.mystery_due_days)

        created: List[OrderModel] = []
        skipped: List[str] = []
        seen = set()
        for item in items:
            if item.tracking_id in seen or self.get_by_tracking_id(item.tracking_id):
                skipped.append(item.tracking_id)
                continue
            seen.add(item.tracking_id)

            description = item.description or f"Mystery item {item.tracking_id}"
            notes = f"{description} - {item.location}" if item.location else None
            created.append(
                self._new_order(
                    {
                        "tracking_id": item.tracking_id,
                        "customer_id": customer.id,
                        "order_type": OrderType.FRAME.value,
                        "status": OrderStatus.MYSTERY_UNCLAIMED.value,
                        "priority": Priority.LOW.value,
                        "due_date": due_date,
                        "estimated_hours": 2.0,
                        "price": 0.0,
                        "description": description,
                        "notes": notes,
                        "invoice_number": item.invoice_number,
                        "artwork_location": item.location,
                    },
                    acting_user_id,
                    "Mystery item intake",
                )
            )

        if created:
            commit_or_raise(self.db, "create_mystery_orders", count=len(created))
            for db_order in created:
                self.db.refresh(db_order)
            safe_broadcast(
                self.notifier,
                ChangeEvent.for_orders(
                    ChangeEventType.ORDER_CREATED,
                    [o.id for o in created],
                    OrderStatus.MYSTERY_UNCLAIMED.value,
                ),
            )

        logger.info(
            "mystery_orders_imported", created=len(created), skipped=len(skipped)
        )
        return created, skipped

    def set_priority_batch(
        self, order_ids: Sequence[str], priority: Priority
    ) -> List[Dict[str, Any]]:
        """Set one priority on many orders, reporting each order separately."""
        outcomes: List[Dict[str, Any]] = []
        changed: List[str] = []
        now = utc_now()
        for order_id in dedupe(order_ids):
            db_order = self.get(order_id)
            if not db_order:
                outcomes.append(
                    {
                        "order_id": order_id,
                        "ok": False,
                        "changed": False,
                        "error": NotFoundError("order", order_id).to_dict(),
                    }
                )
                continue
            is_change = db_order.priority != priority.value
            if is_change:
                db_order.priority = priority.value
                db_order.updated_at = now
                changed.append(order_id)
            outcomes.append(
                {"order_id": order_id, "ok": True, "changed": is_change, "error": None}
            )

        if changed:
            commit_or_raise(self.db, "set_priority_batch", count=len(changed))
            safe_broadcast(
                self.notifier,
                ChangeEvent.for_orders(ChangeEventType.ORDER_PRIORITY_CHANGED, changed),
            )
        return outcomes

    def auto_assign_priorities(
        self, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Re-derive priority from due dates for every order not yet collected."""
        now = now or utc_now()
        updates: List[Dict[str, Any]] = []
        for db_order in self.list():
            if db_order.status == OrderStatus.PICKED_UP.value:
                continue
            suggested = suggest_priority(db_order.due_date, db_order.status, now)
            if suggested.value != db_order.priority:
                updates.append(
                    {
                        "order_id": db_order.id,
                        "from_priority": db_order.priority,
                        "to_priority": suggested.value,
                    }
                )
                db_order.priority = suggested.value
                db_order.updated_at = now

        if updates:
            commit_or_raise(self.db, "auto_assign_priorities", count=len(updates))
            safe_broadcast(
                self.notifier,
                ChangeEvent.for_orders(
                    ChangeEventType.ORDER_PRIORITY_CHANGED,
                    [u["order_id"] for u in updates],
                ),
            )
        logger.info("priorities_auto_assigned", updated=len(updates))
        return updates


class MaterialService:
    """Service for bill-of-materials lines."""

    def __init__(self, db: Session, notifier: Optional[ChangeChannel] = None):
        self.db = db
        self.notifier = notifier

    def get(self, material_id: str) -> Optional[MaterialModel]:
        return (
            self.db.query(MaterialModel).filter(MaterialModel.id == material_id).first()
        )

    def _require_order(self, order_id: str) -> OrderModel:
        order = self.db.query(OrderModel).filter(OrderModel.id == order_id).first()
        if not order:
            raise NotFoundError("order", order_id)
        return order

    def list_for_order(self, order_id: str) -> List[MaterialModel]:
        self._require_order(order_id)
        return (
            self.db.query(MaterialModel)
            .filter(MaterialModel.order_id == order_id)
            .order_by(MaterialModel.created_at)
            .all()
        )

    def create(self, order_id: str, material: MaterialCreate) -> MaterialModel:
        """Add a material line to an existing order."""
        self._require_order(order_id)
        now = utc_now()
        db_material = MaterialModel(
            order_id=order_id,
            type=material.type.value,
            subtype=material.subtype,
            quantity=material.quantity,
            unit=material.unit,
            ordered=material.ordered,
            arrived=material.arrived,
            supplier=material.supplier,
            cost=material.cost,
            ordered_date=now if material.ordered else None,
            arrived_date=now if material.arrived else None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(db_material)
        commit_or_raise(self.db, "create_material", order_id=order_id)
        self.db.refresh(db_material)
        self._notify(order_id)
        return db_material

    def update(self, material_id: str, update: MaterialUpdate) -> MaterialModel:
        """Edit a material line.

        Turning a flag on stamps its date. ``arrived`` without ``ordered`` is
        kept as given; ``procurement_state`` reads it as ARRIVED.
        """
        db_material = self.get(material_id)
        if not db_material:
            raise NotFoundError("material", material_id)

        now = utc_now()
        changes = update.model_dump(exclude_unset=True)
        if changes.get("ordered") and not db_material.ordered:
            db_material.ordered_date = now
        if changes.get("arrived") and not db_material.arrived:
            db_material.arrived_date = now
        for name, value in changes.items():
            if value is None and name in ("ordered", "arrived", "quantity", "unit"):
                continue
            setattr(db_material, name, value)
        db_material.updated_at = now

        commit_or_raise(self.db, "update_material", material_id=material_id)
        self.db.refresh(db_material)
        logger.info(
            "material_updated",
            material_id=material_id,
            order_id=db_material.order_id,
            procurement_state=db_material.procurement_state.value,
        )
        self._notify(db_material.order_id)
        return db_material

    def _notify(self, order_id: str) -> None:
        safe_broadcast(
            self.notifier,
            ChangeEvent.for_orders(ChangeEventType.MATERIAL_UPDATED, [order_id]),
        )

