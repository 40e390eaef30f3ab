"""
Kanban board projection.

The board is a pure function of the current orders: ``build_board`` groups
them by status into the fixed columns, and ``BoardView`` keeps a
disposable client-side copy that is rebuilt from a fresh fetch whenever
anything changes. Cards are never patched from event payloads.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from ..exceptions import ValidationError
from ..primitives import as_utc
from ..realtime.events import ChangeEvent
from ..realtime.notifier import ChangeChannel, Subscription
from ..workflow.enums import (
    OrderStatus,
    PRIORITY_URGENCY,
    Priority,
    parse_enum,
    require_exhaustive,
)

logger = structlog.get_logger()

OTHER_COLUMN = "other"

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class KanbanColumn:
    """A rendered board column bound to exactly one status."""

    status: OrderStatus
    title: str
    description: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "title": self.title,
            "description": self.description,
            "color": self.color,
        }


KANBAN_COLUMNS: Tuple[KanbanColumn, ...] = (
    KanbanColumn(
        OrderStatus.ORDER_PROCESSED,
        "Order Processed",
        "New orders ready for production",
        "jade",
    ),
    KanbanColumn(
        OrderStatus.MATERIALS_ORDERED,
        "Materials Ordered",
        "Materials ordered from suppliers",
        "blue",
    ),
    KanbanColumn(
        OrderStatus.MATERIALS_ARRIVED,
        "Materials Arrived",
        "Materials received and ready",
        "green",
    ),
    KanbanColumn(
        OrderStatus.FRAME_CUT, "Frame Cut", "Frame cutting in progress", "purple"
    ),
    KanbanColumn(OrderStatus.MAT_CUT, "Mat Cut", "Mat cutting in progress", "pink"),
    KanbanColumn(
        OrderStatus.PREPPED, "Prepped", "Assembly preparation complete", "orange"
    ),
    KanbanColumn(
        OrderStatus.COMPLETED, "Completed", "Ready for customer pickup", "green"
    ),
    KanbanColumn(OrderStatus.DELAYED, "Delayed", "Orders with delays", "red"),
    KanbanColumn(OrderStatus.PICKED_UP, "Picked Up", "Completed and collected", "blue"),
    KanbanColumn(
        OrderStatus.MYSTERY_UNCLAIMED,
        "Mystery/Unclaimed",
        "Unclaimed items from mystery drawers",
        "purple",
    ),
)

require_exhaustive(
    {column.status: column for column in KANBAN_COLUMNS}, OrderStatus, "KANBAN_COLUMNS"
)


def _get(order: Any, name: str) -> Any:
    """Read a field from an ORM order or from its ``to_dict()`` form."""
    if isinstance(order, dict):
        return order.get(name)
    return getattr(order, name, None)


def _card_sort_key(order: Any) -> Tuple[int, datetime, str]:
    try:
        urgency = PRIORITY_URGENCY[Priority(_get(order, "priority"))]
    except ValueError:
        urgency = 0
    due = _get(order, "due_date")
    if isinstance(due, str):
        due = datetime.fromisoformat(due)
    due = as_utc(due) if due else _FAR_FUTURE
    return (-urgency, due, str(_get(order, "tracking_id") or ""))


@dataclass
class BoardColumn:
    column: KanbanColumn
    orders: List[Any] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.orders)


@dataclass
class Board:
    """Orders grouped by column; ``other`` holds unrendered statuses."""

    columns: List[BoardColumn]
    other: List[Any] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(c.count for c in self.columns) + len(self.other)

    def column_for(self, status: str) -> Optional[BoardColumn]:
        for board_column in self.columns:
            if board_column.column.status.value == status:
                return board_column
        return None

    def locate(self, order_id: str) -> Optional[str]:
        """Status key of the column holding ``order_id``, or None."""
        for board_column in self.columns:
            if any(_get(o, "id") == order_id for o in board_column.orders):
                return board_column.column.status.value
        if any(_get(o, "id") == order_id for o in self.other):
            return OTHER_COLUMN
        return None

    def find(self, order_id: str) -> Optional[Any]:
        for board_column in self.columns:
            for order in board_column.orders:
                if _get(order, "id") == order_id:
                    return order
        for order in self.other:
            if _get(order, "id") == order_id:
                return order
        return None

    def to_dict(self, card: Optional[Callable[[Any], Any]] = None) -> Dict[str, Any]:
        render = card or (lambda o: o if isinstance(o, dict) else o.to_dict())
        return {
            "total": self.total,
            "columns": [
                {
                    **bc.column.to_dict(),
                    "count": bc.count,
                    "orders": [render(o) for o in bc.orders],
                }
                for bc in self.columns
            ],
            OTHER_COLUMN: {
                "count": len(self.other),
                "orders": [render(o) for o in self.other],
            },
        }


def build_board(
    orders: Iterable[Any], columns: Sequence[KanbanColumn] = KANBAN_COLUMNS
) -> Board:
    """Group ``orders`` into ``columns``.

    Every order lands in exactly one place: its status column, or the
    ``other`` bucket when no rendered column carries that status (a legacy
    value, or a column the caller left out). Within a column cards are
    ordered by urgency, then due date.
    """
    board = Board(columns=[BoardColumn(column) for column in columns])
    by_status = {bc.column.status.value: bc for bc in board.columns}
    for order in orders:
        target = by_status.get(_get(order, "status"))
        if target is None:
            board.other.append(order)
        else:
            target.orders.append(order)

    for board_column in board.columns:
        board_column.orders.sort(key=_card_sort_key)
    board.other.sort(key=_card_sort_key)
    return board


def drop_order(
    engine: Any,
    order_id: str,
    target_status: Any,
    acting_user_id: str,
    reason: Optional[str] = None,
):
    """Server-side drop: route the move through the transition engine.

    Dropping onto the column the order is already in comes back from the
    engine as an unchanged result with nothing written.
    """
    return engine.transition(order_id, target_status, acting_user_id, reason)


class BoardView:
    """Client-side board that re-fetches instead of trusting events.

    ``fetch_orders`` returns the current orders (dicts as served by the
    API); ``move(order_id, status)`` performs the remote transition.
    """

    def __init__(
        self,
        fetch_orders: Callable[[], Iterable[Dict[str, Any]]],
        move: Callable[[str, str], Any],
        columns: Sequence[KanbanColumn] = KANBAN_COLUMNS,
    ):
        self._fetch_orders = fetch_orders
        self._move = move
        self.columns = tuple(columns)
        self.board = build_board([], self.columns)
        self._lock = threading.RLock()
        self._subscription: Optional[Subscription] = None

    def refresh(self) -> Board:
        """Rebuild the board from a fresh fetch."""
        board = build_board(list(self._fetch_orders()), self.columns)
        with self._lock:
            self.board = board
        return board

    def on_drop(self, order_id: str, target_status: str) -> bool:
        """Handle a card dropped on ``target_status``.

        Returns False when the card already sits in that column (no request
        is made). Otherwise the card moves immediately, the transition is
        requested, and the board is re-fetched. If the request fails the
        previous board is restored and the error propagates.
        """
        try:
            target = parse_enum(OrderStatus, target_status).value
        except ValueError:
            raise ValidationError(
                f"unknown order status '{target_status}'", {"status": target_status}
            )

        with self._lock:
            if self.board.locate(order_id) == target:
                return False
            previous = self.board
            card = previous.find(order_id)
            if card is not None:
                self.board = self._optimistic(previous, order_id, card, target)

        try:
            self._move(order_id, target)
        except Exception:
            with self._lock:
                self.board = previous
            logger.warning("kanban_drop_reverted", order_id=order_id, to_status=target)
            raise

        self.refresh()
        return True

    def _optimistic(
        self, board: Board, order_id: str, card: Dict[str, Any], target: str
    ) -> Board:
        orders = [
            o
            for bc in board.columns
            for o in bc.orders
            if _get(o, "id") != order_id
        ]
        orders.extend(o for o in board.other if _get(o, "id") != order_id)
        moved = dict(card) if isinstance(card, dict) else card.to_dict()
        moved["status"] = target
        orders.append(moved)
        return build_board(orders, self.columns)

    def handle_event(self, event: ChangeEvent) -> Board:
        """React to any change event by re-fetching; the payload is ignored."""
        logger.debug("kanban_refresh_on_event", event_type=event.type.value)
        return self.refresh()

    def attach(self, channel: ChangeChannel) -> Subscription:
        """Subscribe to ``channel`` so every event triggers a refresh."""
        self.detach()
        self._subscription = channel.subscribe(self.handle_event)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
