from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
from datetime import datetime


class ParticipantKind(str, Enum):
    DOCTOR = "doctor"
    PATIENT = "patient"


@dataclass
class ConversationDto:
    id: str
    doctor_id: str
    patient_id: str
    appointment_id: str
    is_closed: bool
    created_at: datetime

    def kind_of(self, user_id: str) -> Optional[ParticipantKind]:
        if user_id == self.doctor_id:
            return ParticipantKind.DOCTOR
        if user_id == self.patient_id:
            return ParticipantKind.PATIENT
        return None

    def counterpart_of(self, user_id: str) -> Optional[str]:
        if user_id == self.doctor_id:
            return self.patient_id
        if user_id == self.patient_id:
            return self.doctor_id
        return None


class ConversationsRepository:
    def get_by_id(self, conversation_id: str) -> Optional[ConversationDto]:
        ...

    def get_by_appointment(self, appointment_id: str) -> Optional[ConversationDto]:
        ...

    def create(self, doctor_id: str, patient_id: str, appointment_id: str) -> ConversationDto:
        """Raises DuplicateError when the appointment already has a conversation."""
        ...

    def set_closed_by_appointment(self, appointment_id: str) -> bool:
        ...

    def list_for_participant(self, user_id: str) -> List[ConversationDto]:
        ...
