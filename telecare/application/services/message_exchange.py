import asyncio
import weakref
from dataclasses import dataclass, field
from typing import Any, List, Optional
import logging

from ..ports.messages_repo import MessagesRepository, MessageDto, MessageType, AttachmentDto
from ..ports.room_registry import RoomRegistry
from .conversation_directory import ConversationDirectory
from ...exceptions import ValidationError

logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = "newMessage"


@dataclass
class MessageExchange:
    """Validates, persists and fans out chat messages.

    Persisting and broadcasting happen under a per-conversation lock so that
    every member of a room sees messages in the order they were stored. Share
    ``locks`` between all exchanges bound to the same room registry; unrelated
    conversations never wait on each other.
    """

    directory: ConversationDirectory
    messages: MessagesRepository
    rooms: RoomRegistry
    locks: weakref.WeakValueDictionary = field(default_factory=weakref.WeakValueDictionary)
    max_content_length: int = 5000
    max_attachments: int = 10

    async def send_message(
        self,
        conversation_id: Optional[str],
        sender_id: Optional[str],
        receiver_id: Optional[str],
        content: Optional[str],
        message_type: Optional[str] = MessageType.TEXT.value,
        attachments: Optional[List[Any]] = None,
    ) -> MessageDto:
        if not conversation_id or not sender_id or not receiver_id:
            raise ValidationError()
        message_type = message_type or MessageType.TEXT.value
        if message_type not in [t.value for t in MessageType]:
            raise ValidationError()
        if content is not None and not isinstance(content, str):
            raise ValidationError()
        content = (content or "").strip()
        parsed = self._parse_attachments(attachments)

        if message_type == MessageType.FILE.value:
            # attachment-only file messages may carry no text
            if not parsed:
                raise ValidationError()
        elif not content:
            raise ValidationError()
        if len(content) > self.max_content_length:
            raise ValidationError()

        async with self.lock_for(conversation_id):
            # read under the lock so a close that landed while this send waited is seen
            conversation = self.directory.require_open_participant(conversation_id, sender_id)
            if receiver_id != conversation.counterpart_of(sender_id):
                raise ValidationError()
            sender_kind = conversation.kind_of(sender_id)
            receiver_kind = conversation.kind_of(receiver_id)

            saved = self.messages.create(
                conversation_id,
                sender_id,
                sender_kind.value,
                receiver_id,
                receiver_kind.value,
                content,
                message_type,
                parsed,
            )
            delivered = await self.rooms.broadcast(conversation_id, NEW_MESSAGE_EVENT, saved.to_payload())

        logger.info(f"Message {saved.id} saved and broadcast in {conversation_id} by {sender_id} to {delivered} connection(s)")
        return saved

    def lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self.locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self.locks[conversation_id] = lock
        return lock

    def history(self, conversation_id: str, user_id: str) -> List[MessageDto]:
        self.directory.require_participant(conversation_id, user_id)
        return self.messages.list_for_conversation(conversation_id)

    def mark_read(self, conversation_id: str, reader_id: str) -> int:
        self.directory.require_participant(conversation_id, reader_id)
        return self.messages.mark_read(conversation_id, reader_id)

    def _parse_attachments(self, attachments: Optional[List[Any]]) -> List[AttachmentDto]:
        if attachments is None:
            return []
        if not isinstance(attachments, list) or len(attachments) > self.max_attachments:
            raise ValidationError()

        parsed = []
        for item in attachments:
            if isinstance(item, AttachmentDto):
                parsed.append(item)
                continue
            if not isinstance(item, dict):
                raise ValidationError()
            file_url = item.get("fileUrl") or item.get("file_url")
            if not file_url or not isinstance(file_url, str):
                raise ValidationError()
            parsed.append(AttachmentDto(
                file_url=file_url,
                file_type=item.get("fileType") or item.get("file_type") or "",
                file_name=item.get("fileName") or item.get("file_name") or "",
            ))
        return parsed
