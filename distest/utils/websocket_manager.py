from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass
class ConnectionInfo:
    """A view client attached to the local session."""

    id: str
    websocket: WebSocket
    client_id: Optional[str] = None

    async def send_json(self, message: Dict[str, Any]) -> None:
        await self.websocket.send_json(message)


class WebSocketManager:
    """Tracks view clients per channel and pushes refresh notices to them."""

    def __init__(self) -> None:
        # Key: channel, Value: {connection_id: ConnectionInfo}
        self.active_connections: Dict[str, Dict[str, ConnectionInfo]] = {}

    async def connect(
        self,
        websocket: WebSocket,
        channel: str,
        *,
        client_id: Optional[str] = None,
    ) -> str:
        await websocket.accept()
        connection_id = str(uuid4())
        self.active_connections.setdefault(channel, {})[connection_id] = (
            ConnectionInfo(id=connection_id, websocket=websocket, client_id=client_id)
        )
        logger.debug(
            "WebSocket connected: channel=%s connection_id=%s client_id=%s",
            channel,
            connection_id,
            client_id,
        )
        return connection_id

    def disconnect(self, channel: str, connection_id: str) -> None:
        connections = self.active_connections.get(channel)
        if not connections:
            return
        if connections.pop(connection_id, None) is not None:
            logger.debug(
                "WebSocket disconnected: channel=%s connection_id=%s",
                channel,
                connection_id,
            )
        if not connections:
            self.active_connections.pop(channel, None)

    async def broadcast(
        self,
        channel: str,
        message: Dict[str, Any],
        *,
        skip_connection: Optional[str] = None,
    ) -> None:
        """Send ``message`` to every client of a channel, dropping dead sockets."""
        disconnected: list[str] = []
        for connection_id, connection in list(
            self.active_connections.get(channel, {}).items()
        ):
            if skip_connection and connection_id == skip_connection:
                continue
            try:
                await connection.send_json(message)
            except Exception:  # pragma: no cover - depends on network
                disconnected.append(connection_id)

        for connection_id in disconnected:
            self.disconnect(channel, connection_id)

    async def send_personal_message(
        self,
        channel: str,
        connection_id: str,
        message: Dict[str, Any],
    ) -> None:
        connection = self.active_connections.get(channel, {}).get(connection_id)
        if not connection:
            return
        try:
            await connection.send_json(message)
        except Exception:  # pragma: no cover - depends on network
            self.disconnect(channel, connection_id)

    def connection_count(self, channel: str) -> int:
        return len(self.active_connections.get(channel, {}))


websocket_manager = WebSocketManager()
