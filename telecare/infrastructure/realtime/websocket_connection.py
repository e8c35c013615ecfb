from typing import Any
import uuid

from fastapi import WebSocket

from ...application.ports.identity_provider import Identity


class WebSocketConnection:
    """Binds one accepted WebSocket to the identity verified at handshake."""

    def __init__(self, websocket: WebSocket, identity: Identity) -> None:
        self.id = f"ws_{uuid.uuid4().hex[:12]}"
        self.websocket = websocket
        self.identity = identity

    async def emit(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})
