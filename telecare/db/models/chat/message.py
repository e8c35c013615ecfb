# telecare/db/models/chat/message.py
from typing import Optional, List, Dict, Any
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON
from datetime import datetime

from ....utils import utc_now


class Message(SQLModel, table=True):
    __tablename__ = "messages"
    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: str = Field(foreign_key="conversations.id", index=True)
    sender_id: str
    sender_kind: str
    receiver_id: str
    receiver_kind: str
    content: str = Field(default="")
    message_type: str = Field(default="text")
    attachments: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    is_read: bool = Field(default=False)
    sent_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True), index=True)
