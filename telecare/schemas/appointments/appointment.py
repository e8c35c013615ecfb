# telecare/schemas/appointments/appointment.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class AppointmentCreate(BaseModel):
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # HH:MM
    price: Optional[float] = None
    appointment_type: Optional[str] = Field(default=None, alias="appointmentType")
    description: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class AppointmentUpdate(BaseModel):
    description: Optional[str] = None
    price: Optional[float] = None
    appointment_type: Optional[str] = Field(default=None, alias="appointmentType")

    # unknown keys are kept so the service can refuse date/status changes explicitly
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class AppointmentRequestCreate(BaseModel):
    appointment_id: str = Field(alias="appointmentId")
    message: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(populate_by_name=True)


class ConfirmRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    appointment_id: Optional[str] = Field(default=None, alias="appointmentId")

    model_config = ConfigDict(populate_by_name=True)


class RejectRequest(BaseModel):
    request_id: Optional[str] = Field(default=None, alias="requestId")

    model_config = ConfigDict(populate_by_name=True)


class AppointmentRequestResponse(BaseModel):
    id: str
    user_id: str
    message: Optional[str] = None
    requested_at: datetime


class AppointmentResponse(BaseModel):
    id: str
    doctor_id: str
    appointment_date: datetime
    appointment_type: str
    status: str
    description: Optional[str] = None
    price: float
    patient_id: Optional[str] = None
    is_paid: bool
    payment_date: Optional[datetime] = None
    payment_ref: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    requests: List[AppointmentRequestResponse] = []


class ConfirmResponse(BaseModel):
    success: bool = True
    message: str
    appointment: AppointmentResponse
    conversation_id: str
