"""
Command Line Interface for Frame Tracker.
"""

import asyncio
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.orm import Session

from ..analytics.workload import compute_workload
from ..config import get_settings
from ..db.base import drop_database, get_session_local, init_database
from ..db.services import OrderService
from ..exceptions import FrameTrackerError
from ..kanban.board import build_board
from ..logging import configure_logging
from ..realtime.notifier import get_notifier
from ..workflow.enums import RiskLevel
from ..workflow.transitions import TransitionEngine

app = typer.Typer(help="Frame Tracker - order tracking for the framing shop")
console = Console()

_RISK_STYLE = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red",
    RiskLevel.CRITICAL: "bold red",
}


@contextmanager
def _session() -> Iterator[Session]:
    db = get_session_local()()
    try:
        yield db
    finally:
        db.close()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL"),
) -> None:
    """Configure logging before any command runs."""
    settings = get_settings()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    configure_logging(settings)


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Run the API server."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    rprint(Panel.fit(f"Starting Frame Tracker on http://{host}:{port}", style="bold blue"))
    uvicorn.run("frame_tracker.main:app", host=host, port=port, reload=reload)


@app.command("init-db")
def init_db(
    reset: bool = typer.Option(False, help="Drop existing tables first"),
) -> None:
    """Create all database tables."""
    if reset:
        asyncio.run(drop_database())
        console.print("🗑️  Existing tables dropped")
    asyncio.run(init_database())
    console.print("✅ Database initialized")


@app.command()
def board(
    limit: int = typer.Option(5, help="Cards shown per column"),
) -> None:
    """Show the kanban board."""
    with _session() as db:
        current = build_board(OrderService(db).list())

        table = Table(title=f"Kanban Board ({current.total} orders)", show_header=True)
        table.add_column("Column", style="cyan")
        table.add_column("Count", justify="right", style="magenta")
        table.add_column("Orders")
        for board_column in current.columns:
            shown = [o.tracking_id for o in board_column.orders[:limit]]
            if board_column.count > limit:
                shown.append(f"+{board_column.count - limit} more")
            table.add_row(
                board_column.column.title, str(board_column.count), ", ".join(shown)
            )
        if current.other:
            table.add_row(
                "Other",
                str(len(current.other)),
                ", ".join(f"{o.tracking_id} ({o.status})" for o in current.other),
            )
        console.print(table)


@app.command()
def workload() -> None:
    """Show the workload summary and risk level."""
    with _session() as db:
        summary = compute_workload(OrderService(db).list())

    style = _RISK_STYLE[summary.risk_level]
    rprint(
        Panel.fit(
            f"Risk: [{style}]{summary.risk_level.value}[/{style}]\n"
            f"Active orders: {summary.active_orders}  "
            f"Overdue: {summary.overdue_count}  Urgent: {summary.urgent_count}\n"
            f"Open hours: {summary.total_estimated_hours:.1f}  "
            f"On time: {summary.on_time_percentage}%",
            title="Workload",
        )
    )

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Status")
    table.add_column("Orders", justify="right")
    for status, count in summary.status_counts.items():
        table.add_row(status, str(count))
    console.print(table)

    for alert in summary.alerts:
        console.print(f"{alert.severity.upper()}: {alert.message}")
    for bottleneck in summary.bottlenecks:
        console.print(f"⚠️  Bottleneck: {bottleneck}")


@app.command()
def move(
    order_id: str = typer.Argument(..., help="Order to move"),
    status: str = typer.Argument(..., help="Target status"),
    user: Optional[str] = typer.Option(None, help="Acting user id"),
    reason: Optional[str] = typer.Option(None, help="Reason for the change"),
) -> None:
    """Move an order to a new status."""
    acting_user_id = user or get_settings().system_actor_id
    with _session() as db:
        engine = TransitionEngine(db, get_notifier())
        try:
            result = engine.transition(order_id, status, acting_user_id, reason)
        except FrameTrackerError as e:
            console.print(f"❌ {e.message}")
            raise typer.Exit(code=1)

        if result.changed:
            console.print(
                f"✅ {result.order.tracking_id}: {result.from_status} → {result.to_status}"
            )
        else:
            console.print(f"Order {result.order.tracking_id} is already {result.to_status}")


@app.command()
def version() -> None:
    """Show version information."""
    from ..api import _version

    rprint(Panel.fit(f"Frame Tracker v{_version()}", style="bold green"))


if __name__ == "__main__":
    app()
