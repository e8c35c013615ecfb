from dataclasses import dataclass
from typing import List, Optional, Tuple
from datetime import datetime, timezone
import logging
import math

from ..ports.appointments_repo import (
    AppointmentsRepository,
    AppointmentDto,
    AppointmentRequestDto,
    AppointmentStatus,
    AppointmentType,
    TERMINAL_STATUSES,
)
from ..ports.audit_logger import AuditLogger
from ..ports.conversations_repo import ConversationDto
from .conversation_directory import ConversationDirectory
from ...exceptions import ConflictError, DuplicateError, ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 1000
UPDATABLE_FIELDS = ("description", "price", "appointment_type")
PROTECTED_FIELDS = ("appointment_date", "appointmentDate", "date", "time", "status", "patient_id", "patientId", "doctor_id", "doctorId")


@dataclass
class AppointmentsService:
    repo: AppointmentsRepository
    directory: ConversationDirectory
    audit: Optional[AuditLogger] = None

    def create(self, doctor_id: str, date_str: Optional[str], time_str: Optional[str], price, appointment_type: Optional[str] = None, description: Optional[str] = None) -> AppointmentDto:
        if not date_str or not time_str or price is None:
            raise ValidationError("Date, time and price are required")
        try:
            appointment_date = datetime.strptime(f"{date_str} {time_str}", "%Y-%m-%d %H:%M").replace(tzinfo=timezone.utc)
        except (ValueError, TypeError):
            raise ValidationError("Invalid date or time format. Use YYYY-MM-DD and HH:MM")

        return self.repo.create(
            doctor_id,
            appointment_date,
            self._validate_price(price),
            self._validate_type(appointment_type or AppointmentType.CONSULTATION.value),
            self._validate_description(description),
        )

    def submit_request(self, appointment_id: str, user_id: str, message: Optional[str] = None) -> AppointmentRequestDto:
        appt = self.repo.get_by_id(appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        if appt.status != AppointmentStatus.AVAILABLE.value:
            raise ConflictError("Appointment not available")
        if appt.doctor_id == user_id:
            raise ForbiddenError("Doctors cannot request their own appointment")
        if any(r.user_id == user_id for r in appt.requests):
            raise DuplicateError("You have already requested this appointment")
        return self.repo.add_request(appointment_id, user_id, message)

    def confirm_request(self, doctor_id: str, target_user_id: str, appointment_id: Optional[str] = None) -> Tuple[AppointmentDto, ConversationDto]:
        if not target_user_id:
            raise ValidationError("User ID is required")

        candidates = self.repo.find_pending_for_user(target_user_id)
        if appointment_id:
            candidates = [a for a in candidates if a.id == appointment_id]
        if not candidates:
            # a retried confirmation of a named, already booked appointment is not an error
            booked = self._already_booked(doctor_id, target_user_id, appointment_id) if appointment_id else None
            if booked:
                return booked, self.directory.create_if_absent(doctor_id, target_user_id, booked.id)
            raise NotFoundError("Appointment or request not found")

        owned = [a for a in candidates if a.doctor_id == doctor_id]
        if not owned:
            raise ForbiddenError("Not authorized to confirm this appointment")
        if len(owned) > 1:
            raise ValidationError("User has several pending requests; appointmentId is required")

        appt = owned[0]
        booked = self.repo.book(appt.id, doctor_id, target_user_id)
        if not booked:
            current = self.repo.get_by_id(appt.id)
            if not (current and current.status == AppointmentStatus.BOOKED.value and current.patient_id == target_user_id):
                self._audit("appointment.confirm", doctor_id, appt.id, success=False, details={"patient_id": target_user_id})
                raise ConflictError("Appointment is no longer available")
            booked = current

        conversation = self.directory.create_if_absent(doctor_id, target_user_id, booked.id)
        self._audit("appointment.confirm", doctor_id, booked.id, details={"patient_id": target_user_id, "conversation_id": conversation.id})
        return booked, conversation

    def reject_request(self, doctor_id: str, request_id: str) -> None:
        if not request_id:
            raise ValidationError("Request ID is required")
        req = self.repo.get_request(request_id)
        if not req:
            raise NotFoundError("Request not found")
        appt = self.repo.get_by_id(req.appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        if appt.doctor_id != doctor_id:
            raise ForbiddenError("Not authorized to reject this request")
        if not self.repo.remove_request(request_id):
            raise NotFoundError("Request not found")
        self._audit("appointment.reject", doctor_id, appt.id, details={"request_id": request_id})

    def close(self, doctor_id: str, appointment_id: str) -> AppointmentDto:
        appt = self._owned(doctor_id, appointment_id)
        if appt.status != AppointmentStatus.BOOKED.value:
            raise ConflictError(f"Cannot close an appointment that is {appt.status}")
        closed = self.repo.transition(appointment_id, [AppointmentStatus.BOOKED.value], AppointmentStatus.CLOSED.value)
        if not closed:
            raise ConflictError("Appointment is no longer booked")
        self.directory.set_closed(appointment_id)
        self._audit("appointment.close", doctor_id, appointment_id)
        return closed

    def cancel(self, doctor_id: str, appointment_id: str) -> AppointmentDto:
        appt = self._owned(doctor_id, appointment_id)
        cancellable = [AppointmentStatus.AVAILABLE.value, AppointmentStatus.BOOKED.value]
        if appt.status not in cancellable:
            raise ConflictError(f"Cannot cancel an appointment that is {appt.status}")
        cancelled = self.repo.transition(appointment_id, cancellable, AppointmentStatus.CANCELLED.value, clear_patient=True)
        if not cancelled:
            raise ConflictError("Appointment changed while cancelling")
        if appt.status == AppointmentStatus.BOOKED.value:
            self.directory.set_closed(appointment_id)
        self._audit("appointment.cancel", doctor_id, appointment_id, details={"previous_status": appt.status})
        return cancelled

    def update(self, doctor_id: str, appointment_id: str, fields: dict) -> AppointmentDto:
        blocked = [f for f in PROTECTED_FIELDS if f in fields]
        if blocked:
            raise ValidationError(f"Fields cannot be changed through update: {', '.join(blocked)}")
        unknown = [f for f in fields if f not in UPDATABLE_FIELDS]
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

        appt = self._owned(doctor_id, appointment_id)
        if appt.status in TERMINAL_STATUSES:
            raise ConflictError(f"Cannot update an appointment that is {appt.status}")

        changes = {}
        if fields.get("description") is not None:
            changes["description"] = self._validate_description(fields["description"])
        if fields.get("price") is not None:
            changes["price"] = self._validate_price(fields["price"])
        if fields.get("appointment_type") is not None:
            changes["appointment_type"] = self._validate_type(fields["appointment_type"])
        if not changes:
            return appt
        return self.repo.update_fields(appointment_id, changes)

    def delete(self, doctor_id: str, appointment_id: str) -> None:
        appt = self._owned(doctor_id, appointment_id)
        if appt.status not in (AppointmentStatus.AVAILABLE.value, AppointmentStatus.CANCELLED.value):
            raise ConflictError(f"Cannot delete an appointment that is {appt.status}")
        if self.directory.find_by_appointment(appointment_id):
            raise ConflictError("Cannot delete an appointment with a conversation history")
        self.repo.delete(appointment_id)

    def list_for_doctor(self, doctor_id: str) -> List[AppointmentDto]:
        return self.repo.list_for_doctor(doctor_id)

    def list_for_patient(self, patient_id: str) -> List[AppointmentDto]:
        return self.repo.list_for_patient(patient_id)

    def list_open(self) -> List[AppointmentDto]:
        return self.repo.list_by_status(AppointmentStatus.AVAILABLE.value)

    def list_requests(self, doctor_id: str, appointment_id: str) -> List[AppointmentRequestDto]:
        appt = self.repo.get_by_id(appointment_id)
        if not appt or appt.doctor_id != doctor_id:
            raise NotFoundError("Appointment not found or not authorized")
        return appt.requests

    def _owned(self, doctor_id: str, appointment_id: str) -> AppointmentDto:
        appt = self.repo.get_by_id(appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        if appt.doctor_id != doctor_id:
            raise ForbiddenError("Not allowed")
        return appt

    def _already_booked(self, doctor_id: str, patient_id: str, appointment_id: str) -> Optional[AppointmentDto]:
        appt = self.repo.get_by_id(appointment_id)
        if (
            appt
            and appt.doctor_id == doctor_id
            and appt.patient_id == patient_id
            and appt.status == AppointmentStatus.BOOKED.value
        ):
            return appt
        return None

    def _validate_price(self, price) -> float:
        if isinstance(price, bool):
            raise ValidationError("Price must be a number")
        try:
            value = float(price)
        except (TypeError, ValueError):
            raise ValidationError("Price must be a number")
        if not math.isfinite(value):
            raise ValidationError("Price must be a finite number")
        if value < 0:
            raise ValidationError("Price cannot be negative")
        return value

    def _validate_type(self, appointment_type: str) -> str:
        valid = [t.value for t in AppointmentType]
        if appointment_type not in valid:
            raise ValidationError(f"Invalid appointment type. Must be one of: {valid}")
        return appointment_type

    def _validate_description(self, description: Optional[str]) -> Optional[str]:
        if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")
        return description

    def _audit(self, action: str, actor_id: str, target_id: str, success: bool = True, details: Optional[dict] = None) -> None:
        if self.audit:
            self.audit.log(action, actor_id, target_id=target_id, success=success, details=details)
