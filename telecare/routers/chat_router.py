from typing import List
from fastapi import APIRouter, Depends
import logging

from ..application.ports.identity_provider import Identity
from ..application.ports.messages_repo import MessageDto
from ..application.services.conversation_directory import ConversationDirectory
from ..application.services.message_exchange import MessageExchange
from ..schemas.chat.chat import (
    AttachmentSchema,
    ConversationResponse,
    MessageResponse,
    SendMessageRequest,
    MarkReadResponse,
)
from .dependencies import get_conversation_directory, get_current_identity, get_message_exchange

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])


def _message_response(m: MessageDto) -> MessageResponse:
    return MessageResponse(
        id=m.id,
        conversation_id=m.conversation_id,
        sender_id=m.sender_id,
        sender_kind=m.sender_kind,
        receiver_id=m.receiver_id,
        receiver_kind=m.receiver_kind,
        content=m.content,
        message_type=m.message_type,
        attachments=[
            AttachmentSchema(file_url=a.file_url, file_type=a.file_type, file_name=a.file_name)
            for a in m.attachments
        ],
        is_read=m.is_read,
        sent_at=m.sent_at,
    )


@router.get("/conversations", response_model=List[ConversationResponse])
def get_my_conversations(
    current: Identity = Depends(get_current_identity),
    directory: ConversationDirectory = Depends(get_conversation_directory),
):
    return [
        ConversationResponse(
            id=c.id,
            doctor_id=c.doctor_id,
            patient_id=c.patient_id,
            appointment_id=c.appointment_id,
            is_closed=c.is_closed,
            created_at=c.created_at,
        )
        for c in directory.list_for_user(current.subject_id)
    ]


@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageResponse])
def get_messages(
    conversation_id: str,
    current: Identity = Depends(get_current_identity),
    exchange: MessageExchange = Depends(get_message_exchange),
):
    return [_message_response(m) for m in exchange.history(conversation_id, current.subject_id)]


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: str,
    payload: SendMessageRequest,
    current: Identity = Depends(get_current_identity),
    exchange: MessageExchange = Depends(get_message_exchange),
):
    attachments = None
    if payload.attachments is not None:
        attachments = [a.model_dump() for a in payload.attachments]
    saved = await exchange.send_message(
        conversation_id,
        current.subject_id,
        payload.receiver,
        payload.content,
        message_type=payload.message_type,
        attachments=attachments,
    )
    return _message_response(saved)


@router.put("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
def mark_conversation_read(
    conversation_id: str,
    current: Identity = Depends(get_current_identity),
    exchange: MessageExchange = Depends(get_message_exchange),
):
    updated = exchange.mark_read(conversation_id, current.subject_id)
    return MarkReadResponse(updated_count=updated)
