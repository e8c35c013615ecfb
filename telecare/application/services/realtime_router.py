from dataclasses import dataclass
from typing import Any, Optional
import logging

from ..ports.identity_provider import Identity, IdentityProvider
from ..ports.room_registry import RealtimeConnection, RoomRegistry
from .conversation_directory import ConversationDirectory
from .message_exchange import MessageExchange
from ...exceptions import AuthenticationError, ForbiddenError, TelecareError, ValidationError

logger = logging.getLogger(__name__)

JOIN_EVENT = "joinConversation"
LEAVE_EVENT = "leaveConversation"
SEND_EVENT = "sendMessage"
JOINED_EVENT = "joined"
LEFT_EVENT = "left"
ERROR_EVENT = "error"


def _text(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


@dataclass
class RealtimeSessionRouter:
    """Gates live connections and conversation rooms.

    A connection is bound to the identity verified at handshake time; joins and
    sends made on behalf of any other user are refused. Room membership lives
    only as long as the connection.
    """

    directory: ConversationDirectory
    exchange: MessageExchange
    rooms: RoomRegistry
    identity_provider: IdentityProvider

    def authenticate(self, token: Optional[str]) -> Identity:
        if not token:
            raise AuthenticationError("Authentication required")
        return self.identity_provider.verify(token)

    async def dispatch(self, connection: RealtimeConnection, event: Any, payload: Any) -> None:
        handlers = {
            JOIN_EVENT: self.join_conversation,
            LEAVE_EVENT: self.leave_conversation,
            SEND_EVENT: self.send_message,
        }
        handler = handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            await connection.emit(ERROR_EVENT, "Unknown event")
            return
        await handler(connection, payload if isinstance(payload, dict) else {})

    async def join_conversation(self, connection: RealtimeConnection, payload: dict) -> None:
        try:
            conversation_id = _text(payload, "conversationId")
            user_id = _text(payload, "userId")
            if not conversation_id or not user_id:
                raise ValidationError()

            conversation = self.directory.require_open_participant(conversation_id, user_id)
            if user_id != connection.identity.subject_id:
                raise ForbiddenError("Access denied")

            self.rooms.join(conversation.id, connection)
            await connection.emit(JOINED_EVENT, conversation.id)
            logger.info(f"User {user_id} joined conversation {conversation.id} on {connection.id}")
        except TelecareError as e:
            logger.warning(f"joinConversation refused on {connection.id}: {e.message}")
            await connection.emit(ERROR_EVENT, e.message)
        except Exception:
            logger.exception(f"Error in joinConversation on {connection.id}")
            await connection.emit(ERROR_EVENT, "Server error during join")

    async def leave_conversation(self, connection: RealtimeConnection, payload: dict) -> None:
        conversation_id = _text(payload, "conversationId")
        if not conversation_id:
            await connection.emit(ERROR_EVENT, ValidationError.default_message)
            return
        self.rooms.leave(conversation_id, connection)
        await connection.emit(LEFT_EVENT, conversation_id)

    async def send_message(self, connection: RealtimeConnection, payload: dict) -> None:
        try:
            sender_id = _text(payload, "sender")
            if sender_id and sender_id != connection.identity.subject_id:
                raise ForbiddenError("Access denied")

            await self.exchange.send_message(
                _text(payload, "conversationId"),
                sender_id,
                _text(payload, "receiver"),
                payload.get("content"),
                message_type=payload.get("messageType") or "text",
                attachments=payload.get("attachments"),
            )
        except TelecareError as e:
            logger.warning(f"sendMessage refused on {connection.id}: {e.message}")
            await connection.emit(ERROR_EVENT, e.message)
        except Exception:
            logger.exception(f"Error in sendMessage on {connection.id}")
            await connection.emit(ERROR_EVENT, "Server error during message send")

    def disconnect(self, connection: RealtimeConnection) -> None:
        left = self.rooms.rooms_of(connection)
        self.rooms.leave_all(connection)
        logger.info(f"Socket disconnected: {connection.id}, left {len(left)} room(s)")
