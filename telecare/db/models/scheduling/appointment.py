# telecare/db/models/scheduling/appointment.py
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime, UniqueConstraint
from datetime import datetime
import uuid

from ....utils import utc_now


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    doctor_id: str = Field(index=True)
    appointment_date: datetime = Field(sa_type=DateTime(timezone=True))
    appointment_type: str = Field(default="consultation")
    status: str = Field(default="available", index=True)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: float
    patient_id: Optional[str] = Field(default=None, index=True)
    is_paid: bool = Field(default=False)
    payment_date: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    payment_ref: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class AppointmentRequest(SQLModel, table=True):
    __tablename__ = "appointment_requests"
    __table_args__ = (UniqueConstraint("appointment_id", "user_id", name="uq_request_appointment_user"),)
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    appointment_id: str = Field(foreign_key="appointments.id", index=True)
    user_id: str = Field(index=True)
    message: Optional[str] = Field(default=None)
    requested_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
