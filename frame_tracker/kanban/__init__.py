"""Kanban board grouping and drag-and-drop reassignment."""

from .board import (
    KANBAN_COLUMNS,
    OTHER_COLUMN,
    Board,
    BoardColumn,
    BoardView,
    KanbanColumn,
    build_board,
    drop_order,
)

__all__ = [
    "KANBAN_COLUMNS",
    "OTHER_COLUMN",
    "Board",
    "BoardColumn",
    "BoardView",
    "KanbanColumn",
    "build_board",
    "drop_order",
]
