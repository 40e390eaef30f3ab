"""
Status transition engine.

This is the single write path for ``Order.status``. Each change updates the
order and appends a StatusHistory row in one commit, then notifies
subscribers. Notification happens only after the commit succeeded and can
never fail the transition.

By default any status may move to any other (the shop often skips or
repeats stages). With ``strict_pipeline`` enabled, moves are checked
against ``LEGAL_SUCCESSORS``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db.models import OrderModel, StatusHistoryModel
from ..db.services import UserService, commit_or_raise, dedupe
from ..exceptions import ConflictError, FrameTrackerError, NotFoundError, ValidationError
from ..primitives import utc_now
from ..realtime.events import ChangeEvent, ChangeEventType
from ..realtime.notifier import ChangeChannel, safe_broadcast
from .enums import LEGAL_SUCCESSORS, OrderStatus, parse_enum

logger = structlog.get_logger()


@dataclass
class TransitionResult:
    """Outcome of a single-order transition."""

    order: OrderModel
    from_status: Optional[str]
    to_status: str
    changed: bool
    history: Optional[StatusHistoryModel] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.order.to_dict(),
            "from_status": self.from_status,
            "to_status": self.to_status,
            "changed": self.changed,
            "history": self.history.to_dict() if self.history else None,
        }


@dataclass
class TransitionOutcome:
    """Per-order entry of a batch result."""

    order_id: str
    ok: bool
    changed: bool = False
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "ok": self.ok,
            "changed": self.changed,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "error": self.error,
        }


@dataclass
class BatchTransitionResult:
    """Outcome of ``transition_batch``; one entry per distinct order id."""

    to_status: str
    outcomes: List[TransitionOutcome] = field(default_factory=list)

    @property
    def changed_ids(self) -> List[str]:
        return [o.order_id for o in self.outcomes if o.changed]

    @property
    def failed_ids(self) -> List[str]:
        return [o.order_id for o in self.outcomes if not o.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to_status": self.to_status,
            "succeeded": sum(1 for o in self.outcomes if o.ok),
            "failed": len(self.failed_ids),
            "changed_ids": self.changed_ids,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class TransitionEngine:
    """Applies validated, audited status changes to orders."""

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

    def parse_status(self, value: Any) -> OrderStatus:
        try:
            return parse_enum(OrderStatus, value)
        except ValueError:
            raise ValidationError(
                f"unknown order status '{value}'",
                {
                    "status": value,
                    "allowed": [status.value for status in OrderStatus],
                },
            )

    def _check_pipeline(self, order: OrderModel, target: OrderStatus) -> None:
        if not self.settings.strict_pipeline:
            return
        current = order.status_enum
        # Legacy statuses have no successor table; let them move anywhere.
        if current is None:
            return
        if target not in LEGAL_SUCCESSORS[current]:
            raise ConflictError(
                f"cannot move order from {current.value} to {target.value}",
                {
                    "order_id": order.id,
                    "from_status": current.value,
                    "to_status": target.value,
                    "allowed": sorted(s.value for s in LEGAL_SUCCESSORS[current]),
                },
            )

    def _next_sequence(self, order_id: str) -> int:
        current = (
            self.db.query(func.max(StatusHistoryModel.sequence))
            .filter(StatusHistoryModel.order_id == order_id)
            .scalar()
        )
        return (current or 0) + 1

    def _apply(
        self,
        order_id: str,
        target: OrderStatus,
        acting_user_id: str,
        reason: Optional[str],
        now: datetime,
    ) -> TransitionResult:
        order = self.db.query(OrderModel).filter(OrderModel.id == order_id).first()
        if not order:
            raise NotFoundError("order", order_id)

        from_status = order.status
        if from_status == target.value:
            return TransitionResult(
                order=order, from_status=from_status, to_status=target.value, changed=False
            )

        self._check_pipeline(order, target)

        history = StatusHistoryModel(
            order_id=order.id,
            sequence=self._next_sequence(order.id),
            from_status=from_status,
            to_status=target.value,
            changed_by=acting_user_id,
            reason=reason,
            created_at=now,
        )
        order.status = target.value
        order.updated_at = now
        order.stamp_status_times(now)
        self.db.add(history)

        commit_or_raise(
            self.db,
            "transition",
            order_id=order_id,
            from_status=from_status,
            to_status=target.value,
        )
        self.db.refresh(order)
        self.db.refresh(history)

        logger.info(
            "order_status_changed",
            order_id=order_id,
            from_status=from_status,
            to_status=target.value,
            actor=acting_user_id,
            reason=reason,
        )
        return TransitionResult(
            order=order,
            from_status=from_status,
            to_status=target.value,
            changed=True,
            history=history,
        )

    @staticmethod
    def _clean_reason(reason: Optional[str]) -> Optional[str]:
        if reason is None:
            return None
        return reason.strip() or None

    def transition(
        self,
        order_id: str,
        new_status: Any,
        acting_user_id: str,
        reason: Optional[str] = None,
    ) -> TransitionResult:
        """Move one order to ``new_status``.

        Moving an order to the status it already has is a no-op: nothing
        is written and nobody is notified.

        Raises:
            ValidationError: unknown status or acting user.
            NotFoundError: no such order.
            ConflictError: illegal move under the strict pipeline.
            IntegrationError: the store rejected the write (rolled back).
        """
        target = self.parse_status(new_status)
        self.users.require_actor(acting_user_id)

        result = self._apply(
            order_id, target, acting_user_id, self._clean_reason(reason), utc_now()
        )
        if result.changed:
            safe_broadcast(
                self.notifier,
                ChangeEvent.for_orders(
                    ChangeEventType.ORDER_STATUS_CHANGED, [order_id], target.value
                ),
            )
        return result

    def transition_batch(
        self,
        order_ids: Sequence[str],
        new_status: Any,
        acting_user_id: str,
        reason: Optional[str] = None,
    ) -> BatchTransitionResult:
        """Move many orders to one status.

        The status and actor are checked once up front; after that each
        order commits on its own, so one missing or rejected order does not
        hold back the others. Repeated ids are processed once.
        """
        target = self.parse_status(new_status)
        self.users.require_actor(acting_user_id)
        reason = self._clean_reason(reason)

        log = logger.bind(to_status=target.value, actor=acting_user_id)
        result = BatchTransitionResult(to_status=target.value)
        now = utc_now()
        for order_id in dedupe(order_ids):
            try:
                applied = self._apply(order_id, target, acting_user_id, reason, now)
            except FrameTrackerError as e:
                log.warning("batch_transition_failed", order_id=order_id, error=e.code)
                result.outcomes.append(
                    TransitionOutcome(
                        order_id=order_id,
                        ok=False,
                        to_status=target.value,
                        error=e.to_dict(),
                    )
                )
                continue
            result.outcomes.append(
                TransitionOutcome(
                    order_id=order_id,
                    ok=True,
                    changed=applied.changed,
                    from_status=applied.from_status,
                    to_status=target.value,
                )
            )

        if result.changed_ids:
            safe_broadcast(
                self.notifier,
                ChangeEvent.for_orders(
                    ChangeEventType.ORDER_BATCH_STATUS_CHANGED,
                    result.changed_ids,
                    target.value,
                ),
            )
        log.info(
            "batch_transition_completed",
            requested=len(order_ids),
            changed=len(result.changed_ids),
            failed=len(result.failed_ids),
        )
        return result
