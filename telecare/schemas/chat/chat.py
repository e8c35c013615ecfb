# telecare/schemas/chat/chat.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class AttachmentSchema(BaseModel):
    file_url: str = Field(alias="fileUrl")
    file_type: str = Field(default="", alias="fileType")
    file_name: str = Field(default="", alias="fileName")

    model_config = ConfigDict(populate_by_name=True)


class ConversationResponse(BaseModel):
    id: str
    doctor_id: str
    patient_id: str
    appointment_id: str
    is_closed: bool
    created_at: datetime


class MessageResponse(BaseModel):
    id: int
    conversation_id: str
    sender_id: str
    sender_kind: str
    receiver_id: str
    receiver_kind: str
    content: str
    message_type: str
    attachments: List[AttachmentSchema] = []
    is_read: bool
    sent_at: datetime

    model_config = ConfigDict(populate_by_name=True)


class SendMessageRequest(BaseModel):
    receiver: Optional[str] = None
    content: Optional[str] = None
    message_type: Optional[str] = Field(default="text", alias="messageType")
    attachments: Optional[List[AttachmentSchema]] = None

    model_config = ConfigDict(populate_by_name=True)


class MarkReadResponse(BaseModel):
    success: bool = True
    updated_count: int
