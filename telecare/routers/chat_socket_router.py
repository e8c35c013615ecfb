import json
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from sqlmodel import Session
import logging

from ..application.services.realtime_router import ERROR_EVENT
from ..core.config import settings
from ..exceptions import AuthenticationError, ValidationError
from ..infrastructure.realtime.websocket_connection import WebSocketConnection
from .dependencies import build_realtime_router

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


def _handshake_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get(settings.WS_TOKEN_QUERY_PARAM)
    if token:
        return token
    auth = websocket.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return None


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket):
    """
    Realtime chat endpoint. Frames are JSON objects {"event": ..., "data": ...}.
    """
    state = websocket.app.state

    with Session(state.engine) as session:
        gate = build_realtime_router(state, session)
        try:
            identity = gate.authenticate(_handshake_token(websocket))
        except AuthenticationError as e:
            logger.warning(f"Rejected realtime handshake: {e.message}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    await websocket.accept()
    connection = WebSocketConnection(websocket, identity)
    logger.info(f"Socket connected: {connection.id} as {identity.role.value} {identity.subject_id}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = message.get("text")
            frame = None
            # binary frames carry no event
            if raw is not None:
                try:
                    frame = json.loads(raw)
                except ValueError:
                    frame = None
            if not isinstance(frame, dict):
                await connection.emit(ERROR_EVENT, ValidationError.default_message)
                continue

            # one short-lived session per event
            with Session(state.engine) as session:
                await build_realtime_router(state, session).dispatch(connection, frame.get("event"), frame.get("data"))
    except WebSocketDisconnect:
        pass
    finally:
        with Session(state.engine) as session:
            build_realtime_router(state, session).disconnect(connection)
