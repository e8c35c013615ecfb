from dataclasses import asdict
from typing import List
from sqlalchemy import update
from sqlmodel import Session, select

from .....db.models import Message
from .....application.ports.messages_repo import MessagesRepository, MessageDto, AttachmentDto
from .....utils import as_utc


class SqlMessagesRepository(MessagesRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, m: Message) -> MessageDto:
        return MessageDto(
            id=m.id,
            conversation_id=m.conversation_id,
            sender_id=m.sender_id,
            sender_kind=m.sender_kind,
            receiver_id=m.receiver_id,
            receiver_kind=m.receiver_kind,
            content=m.content,
            message_type=m.message_type,
            attachments=[AttachmentDto(**a) for a in (m.attachments or [])],
            is_read=m.is_read,
            sent_at=as_utc(m.sent_at),
        )

    def create(self, conversation_id: str, sender_id: str, sender_kind: str, receiver_id: str, receiver_kind: str, content: str, message_type: str, attachments: List[AttachmentDto]) -> MessageDto:
        m = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            sender_kind=sender_kind,
            receiver_id=receiver_id,
            receiver_kind=receiver_kind,
            content=content,
            message_type=message_type,
            attachments=[asdict(a) for a in attachments],
        )
        self.session.add(m)
        self.session.commit()
        self.session.refresh(m)
        return self._to_dto(m)

    def list_for_conversation(self, conversation_id: str) -> List[MessageDto]:
        rows = self.session.exec(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.sent_at, Message.id)
        ).all()
        return [self._to_dto(m) for m in rows]

    def mark_read(self, conversation_id: str, receiver_id: str) -> int:
        result = self.session.exec(
            update(Message)
            .where(Message.conversation_id == conversation_id)
            .where(Message.receiver_id == receiver_id)
            .where(Message.is_read == False)  # noqa: E712
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount
