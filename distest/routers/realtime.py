import asyncio
import logging
from datetime import datetime, timezone
from typing import Set

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from distest.routers.session import build_status
from distest.services.session_manager import (
    ParticipantSessionManager,
    get_session_manager,
)
from distest.utils.websocket_manager import websocket_manager

router = APIRouter(prefix="/ws", tags=["realtime"])

logger = logging.getLogger(__name__)

SESSION_CHANNEL = "session"
INVALIDATE_MESSAGE = {"type": "invalidate"}

_broadcast_tasks: Set["asyncio.Task[None]"] = set()


def notify_invalidated() -> None:
    """Ask every attached view to re-read the session.

    Invalidation is raised synchronously from inside request handlers, so the
    broadcast is scheduled on the running loop rather than awaited.
    """
    if not websocket_manager.connection_count(SESSION_CHANNEL):
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running loop; invalidate notice dropped")
        return
    task = loop.create_task(
        websocket_manager.broadcast(SESSION_CHANNEL, INVALIDATE_MESSAGE)
    )
    _broadcast_tasks.add(task)
    task.add_done_callback(_broadcast_tasks.discard)


def attach(manager: ParticipantSessionManager) -> None:
    manager.add_invalidation_listener(notify_invalidated)


def detach(manager: ParticipantSessionManager) -> None:
    manager.remove_invalidation_listener(notify_invalidated)


@router.websocket("/session")
async def session_socket(
    websocket: WebSocket,
    manager: ParticipantSessionManager = Depends(get_session_manager),
) -> None:
    """Push channel for views: sends an ack, then ``invalidate`` on every change."""
    client_id = websocket.query_params.get("clientId")
    connection_id = await websocket_manager.connect(
        websocket, SESSION_CHANNEL, client_id=client_id
    )
    await websocket_manager.send_personal_message(
        SESSION_CHANNEL,
        connection_id,
        {
            "type": "connection_ack",
            "payload": {
                "connectionId": connection_id,
                "status": build_status(manager).model_dump(),
            },
        },
    )

    try:
        while True:
            message = await websocket.receive_json()
            message_type = message.get("type")
            if message_type == "ping":
                await websocket_manager.send_personal_message(
                    SESSION_CHANNEL,
                    connection_id,
                    {
                        "type": "pong",
                        "payload": {
                            "timestamp": datetime.now(timezone.utc).isoformat()
                        },
                    },
                )
            elif message_type == "state_request":
                await websocket_manager.send_personal_message(
                    SESSION_CHANNEL,
                    connection_id,
                    {
                        "type": "session_state",
                        "payload": build_status(manager).model_dump(),
                    },
                )
            else:
                await websocket_manager.send_personal_message(
                    SESSION_CHANNEL,
                    connection_id,
                    {
                        "type": "error",
                        "payload": {"message": f"Unknown message type: {message_type}"},
                    },
                )
    except WebSocketDisconnect:
        logger.debug("Session socket closed: connection_id=%s", connection_id)
    finally:
        websocket_manager.disconnect(SESSION_CHANNEL, connection_id)
