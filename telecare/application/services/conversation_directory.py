from dataclasses import dataclass
from typing import List, Optional
import logging

from ..ports.conversations_repo import ConversationsRepository, ConversationDto, ParticipantKind
from ...exceptions import ConflictError, DuplicateError, ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ConversationDirectory:
    repo: ConversationsRepository

    def get(self, conversation_id: str) -> Optional[ConversationDto]:
        if not conversation_id:
            return None
        return self.repo.get_by_id(conversation_id)

    def find_by_appointment(self, appointment_id: str) -> Optional[ConversationDto]:
        return self.repo.get_by_appointment(appointment_id)

    def create_if_absent(self, doctor_id: str, patient_id: str, appointment_id: str) -> ConversationDto:
        if not doctor_id or not patient_id or not appointment_id:
            raise ValidationError("Conversation requires doctor, patient and appointment")
        if doctor_id == patient_id:
            raise ValidationError("Doctor and patient must be different users")

        existing = self.repo.get_by_appointment(appointment_id)
        if existing:
            return existing
        try:
            conversation = self.repo.create(doctor_id, patient_id, appointment_id)
            logger.info(f"Conversation {conversation.id} opened for appointment {appointment_id}")
            return conversation
        except DuplicateError:
            # another confirmation created it first
            existing = self.repo.get_by_appointment(appointment_id)
            if not existing:
                raise
            return existing

    def set_closed(self, appointment_id: str) -> bool:
        closed = self.repo.set_closed_by_appointment(appointment_id)
        if not closed:
            logger.info(f"No conversation to close for appointment {appointment_id}")
        return closed

    def is_participant(self, conversation_id: str, user_id: str) -> bool:
        conversation = self.get(conversation_id)
        if not conversation or not user_id:
            return False
        return conversation.kind_of(user_id) is not None

    def participant_kind(self, conversation: ConversationDto, user_id: str) -> Optional[ParticipantKind]:
        return conversation.kind_of(user_id)

    def require_participant(self, conversation_id: str, user_id: str) -> ConversationDto:
        conversation = self.get(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation not found")
        if conversation.kind_of(user_id) is None:
            raise ForbiddenError("Access denied")
        return conversation

    def require_open_participant(self, conversation_id: str, user_id: str) -> ConversationDto:
        """Precondition chain shared by join and send: exists, open, participant."""
        conversation = self.get(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation not found")
        if conversation.is_closed:
            raise ConflictError("Conversation is closed")
        if conversation.kind_of(user_id) is None:
            raise ForbiddenError("Access denied")
        return conversation

    def list_for_user(self, user_id: str) -> List[ConversationDto]:
        return self.repo.list_for_participant(user_id)
