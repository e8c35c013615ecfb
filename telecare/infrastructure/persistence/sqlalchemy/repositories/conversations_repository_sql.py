from typing import List, Optional
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import Conversation
from .....application.ports.conversations_repo import ConversationsRepository, ConversationDto
from .....exceptions import DuplicateError
from .....utils import as_utc


class SqlConversationsRepository(ConversationsRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, c: Conversation) -> ConversationDto:
        return ConversationDto(
            id=c.id,
            doctor_id=c.doctor_id,
            patient_id=c.patient_id,
            appointment_id=c.appointment_id,
            is_closed=c.is_closed,
            created_at=as_utc(c.created_at),
        )

    def get_by_id(self, conversation_id: str) -> Optional[ConversationDto]:
        # the closed flag may have been flipped by another session since this one loaded the row
        c = self.session.exec(
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .execution_options(populate_existing=True)
        ).first()
        return self._to_dto(c) if c else None

    def get_by_appointment(self, appointment_id: str) -> Optional[ConversationDto]:
        c = self.session.exec(select(Conversation).where(Conversation.appointment_id == appointment_id)).first()
        return self._to_dto(c) if c else None

    def create(self, doctor_id: str, patient_id: str, appointment_id: str) -> ConversationDto:
        c = Conversation(doctor_id=doctor_id, patient_id=patient_id, appointment_id=appointment_id)
        self.session.add(c)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise DuplicateError("Conversation already exists for this appointment")
        self.session.refresh(c)
        return self._to_dto(c)

    def set_closed_by_appointment(self, appointment_id: str) -> bool:
        result = self.session.exec(
            update(Conversation)
            .where(Conversation.appointment_id == appointment_id)
            .values(is_closed=True)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount > 0

    def list_for_participant(self, user_id: str) -> List[ConversationDto]:
        rows = self.session.exec(
            select(Conversation)
            .where(or_(Conversation.doctor_id == user_id, Conversation.patient_id == user_id))
            .order_by(Conversation.created_at.desc())
        ).all()
        return [self._to_dto(c) for c in rows]
