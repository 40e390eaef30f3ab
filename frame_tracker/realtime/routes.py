"""
WebSocket endpoint that streams change events to connected clients.
"""

import asyncio

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..config import Settings, get_settings
from .events import ChangeEvent
from .notifier import ChangeChannel, QueueSubscriber, get_notifier

logger = structlog.get_logger()

router = APIRouter(tags=["realtime"])


async def _pump(websocket: WebSocket, queue: "asyncio.Queue[ChangeEvent]") -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event.to_dict())


async def _stop_pump(pump: "asyncio.Task[None]") -> None:
    """Cancel the sender task and wait for it to finish."""
    pump.cancel()
    try:
        await pump
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("websocket_send_failed")


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    notifier: ChangeChannel = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> None:
    """Push every broadcast event to this client until it disconnects.

    The client may send ``ping``; it gets ``{"type": "pong"}`` back. Any
    other message is ignored.
    """
    await websocket.accept()

    queue: "asyncio.Queue[ChangeEvent]" = asyncio.Queue(
        maxsize=settings.websocket_queue_size
    )
    subscription = notifier.subscribe(QueueSubscriber(queue))
    await websocket.send_json({"type": "connected"})
    logger.info("websocket_connected", subscribers=notifier.subscriber_count)

    pump = asyncio.create_task(_pump(websocket, queue))
    try:
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug("websocket_client_closed")
    finally:
        subscription.close()
        await _stop_pump(pump)
        logger.info("websocket_disconnected", subscribers=notifier.subscriber_count)
