"""WebSocket endpoint streaming live migration events."""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
import asyncio
import logging

from api.dependencies import get_orchestrator
from migration.broadcaster import Subscription
from migration.orchestrator import MigrationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])


@router.websocket("/ws")
async def event_stream(
    websocket: WebSocket,
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator)
):
    """
    Stream run events to one observer.

    The first message is a `state` event with the full current run;
    `log`, `progress`, `approvals` and `state` events follow as they happen.
    A text "ping" from the client is answered with "pong".
    """
    await websocket.accept()
    subscription = orchestrator.subscribe()
    logger.info("Observer connected")

    sender = asyncio.create_task(_forward_events(websocket, subscription))
    receiver = asyncio.create_task(_receive_until_disconnect(websocket))

    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            error = task.exception()
            if error and not isinstance(error, WebSocketDisconnect):
                logger.warning(f"Observer stream closed with error: {error!r}")
    finally:
        orchestrator.unsubscribe(subscription)
        logger.info("Observer disconnected")


async def _forward_events(websocket: WebSocket, subscription: Subscription):
    while True:
        event = await subscription.get()
        await websocket.send_json(event.model_dump(mode="json"))


async def _receive_until_disconnect(websocket: WebSocket):
    while True:
        data = await websocket.receive_text()
        if data == "ping":
            await websocket.send_text("pong")
