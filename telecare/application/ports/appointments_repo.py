from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from datetime import datetime


class AppointmentStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    CLOSED = "closed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = (AppointmentStatus.CLOSED.value, AppointmentStatus.CANCELLED.value)


class AppointmentType(str, Enum):
    EMERGENCY = "emergency"
    CONSULTATION = "consultation"
    CHECKUP = "checkup"
    FOLLOW_UP = "follow-up"


@dataclass
class AppointmentRequestDto:
    id: str
    appointment_id: str
    user_id: str
    message: Optional[str]
    requested_at: datetime


@dataclass
class AppointmentDto:
    id: str
    doctor_id: str
    appointment_date: datetime
    appointment_type: str
    status: str
    description: Optional[str]
    price: float
    patient_id: Optional[str]
    is_paid: bool
    payment_date: Optional[datetime]
    payment_ref: Optional[str]
    created_at: datetime
    updated_at: datetime
    requests: List[AppointmentRequestDto] = field(default_factory=list)


class AppointmentsRepository:
    def create(self, doctor_id: str, appointment_date: datetime, price: float, appointment_type: str, description: Optional[str]) -> AppointmentDto:
        ...

    def get_by_id(self, appointment_id: str) -> Optional[AppointmentDto]:
        ...

    def add_request(self, appointment_id: str, user_id: str, message: Optional[str]) -> AppointmentRequestDto:
        """Raises DuplicateError when the user already has a pending request."""
        ...

    def find_pending_for_user(self, user_id: str) -> List[AppointmentDto]:
        """Available appointments holding a pending request from ``user_id``."""
        ...

    def get_request(self, request_id: str) -> Optional[AppointmentRequestDto]:
        ...

    def remove_request(self, request_id: str) -> bool:
        ...

    def book(self, appointment_id: str, doctor_id: str, patient_id: str) -> Optional[AppointmentDto]:
        """Atomically move an available appointment to booked.

        Matches only while the appointment is owned by ``doctor_id``, still
        ``available`` and holds a pending request from ``patient_id``; drops every
        pending request on success. Returns None when nothing matched.
        """
        ...

    def transition(self, appointment_id: str, from_statuses: List[str], to_status: str, clear_patient: bool = False) -> Optional[AppointmentDto]:
        """Conditional status change; also drops pending requests. None when the
        current status is not in ``from_statuses``."""
        ...

    def update_fields(self, appointment_id: str, fields: dict) -> AppointmentDto:
        ...

    def delete(self, appointment_id: str) -> None:
        ...

    def list_for_doctor(self, doctor_id: str) -> List[AppointmentDto]:
        ...

    def list_for_patient(self, patient_id: str) -> List[AppointmentDto]:
        ...

    def list_by_status(self, status: str) -> List[AppointmentDto]:
        ...
