# telecare/db/models/chat/conversation.py
from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime
from datetime import datetime
import uuid

from ....utils import utc_now


class Conversation(SQLModel, table=True):
    __tablename__ = "conversations"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    doctor_id: str = Field(index=True)
    patient_id: str = Field(index=True)
    # one conversation per appointment
    appointment_id: str = Field(foreign_key="appointments.id", unique=True)
    is_closed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
