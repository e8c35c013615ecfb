from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List
from datetime import datetime


class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"
    VIDEO = "video"


@dataclass
class AttachmentDto:
    file_url: str
    file_type: str = ""
    file_name: str = ""


@dataclass
class MessageDto:
    id: int
    conversation_id: str
    sender_id: str
    sender_kind: str
    receiver_id: str
    receiver_kind: str
    content: str
    message_type: str
    attachments: List[AttachmentDto] = field(default_factory=list)
    is_read: bool = False
    sent_at: datetime = None

    def to_payload(self) -> dict:
        data = asdict(self)
        data["sent_at"] = self.sent_at.isoformat() if self.sent_at else None
        return data


class MessagesRepository:
    def create(self, conversation_id: str, sender_id: str, sender_kind: str, receiver_id: str, receiver_kind: str, content: str, message_type: str, attachments: List[AttachmentDto]) -> MessageDto:
        ...

    def list_for_conversation(self, conversation_id: str) -> List[MessageDto]:
        ...

    def mark_read(self, conversation_id: str, receiver_id: str) -> int:
        ...
