from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import Appointment, AppointmentRequest
from .....application.ports.appointments_repo import (
    AppointmentsRepository,
    AppointmentDto,
    AppointmentRequestDto,
    AppointmentStatus,
)
from .....exceptions import DuplicateError
from .....utils import as_utc, utc_now


class SqlAppointmentsRepository(AppointmentsRepository):
    def __init__(self, session: Session):
        self.session = session

    def _request_to_dto(self, r: AppointmentRequest) -> AppointmentRequestDto:
        return AppointmentRequestDto(
            id=r.id,
            appointment_id=r.appointment_id,
            user_id=r.user_id,
            message=r.message,
            requested_at=as_utc(r.requested_at),
        )

    def _appt_to_dto(self, a: Appointment, requests: List[AppointmentRequestDto]) -> AppointmentDto:
        return AppointmentDto(
            id=a.id,
            doctor_id=a.doctor_id,
            appointment_date=as_utc(a.appointment_date),
            appointment_type=a.appointment_type,
            status=a.status,
            description=a.description,
            price=a.price,
            patient_id=a.patient_id,
            is_paid=a.is_paid,
            payment_date=as_utc(a.payment_date),
            payment_ref=a.payment_ref,
            created_at=as_utc(a.created_at),
            updated_at=as_utc(a.updated_at),
            requests=requests,
        )

    def _to_dtos(self, rows: List[Appointment]) -> List[AppointmentDto]:
        if not rows:
            return []
        grouped: Dict[str, List[AppointmentRequestDto]] = {a.id: [] for a in rows}
        requests = self.session.exec(
            select(AppointmentRequest)
            .where(AppointmentRequest.appointment_id.in_(list(grouped)))
            .order_by(AppointmentRequest.requested_at)
        ).all()
        for r in requests:
            grouped[r.appointment_id].append(self._request_to_dto(r))
        return [self._appt_to_dto(a, grouped[a.id]) for a in rows]

    def create(self, doctor_id: str, appointment_date: datetime, price: float, appointment_type: str, description: Optional[str]) -> AppointmentDto:
        appt = Appointment(
            doctor_id=doctor_id,
            appointment_date=appointment_date,
            price=price,
            appointment_type=appointment_type,
            description=description,
            status=AppointmentStatus.AVAILABLE.value,
        )
        self.session.add(appt)
        self.session.commit()
        self.session.refresh(appt)
        return self._appt_to_dto(appt, [])

    def get_by_id(self, appointment_id: str) -> Optional[AppointmentDto]:
        a = self.session.exec(select(Appointment).where(Appointment.id == appointment_id)).first()
        return self._to_dtos([a])[0] if a else None

    def add_request(self, appointment_id: str, user_id: str, message: Optional[str]) -> AppointmentRequestDto:
        req = AppointmentRequest(appointment_id=appointment_id, user_id=user_id, message=message)
        self.session.add(req)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise DuplicateError("You have already requested this appointment")
        self.session.refresh(req)
        return self._request_to_dto(req)

    def find_pending_for_user(self, user_id: str) -> List[AppointmentDto]:
        rows = self.session.exec(
            select(Appointment)
            .join(AppointmentRequest, AppointmentRequest.appointment_id == Appointment.id)
            .where(AppointmentRequest.user_id == user_id)
            .where(Appointment.status == AppointmentStatus.AVAILABLE.value)
            .order_by(Appointment.appointment_date)
        ).all()
        return self._to_dtos(list(rows))

    def get_request(self, request_id: str) -> Optional[AppointmentRequestDto]:
        r = self.session.exec(select(AppointmentRequest).where(AppointmentRequest.id == request_id)).first()
        return self._request_to_dto(r) if r else None

    def remove_request(self, request_id: str) -> bool:
        result = self.session.exec(delete(AppointmentRequest).where(AppointmentRequest.id == request_id))
        self.session.commit()
        return result.rowcount > 0

    def book(self, appointment_id: str, doctor_id: str, patient_id: str) -> Optional[AppointmentDto]:
        has_request = (
            select(AppointmentRequest.id)
            .where(AppointmentRequest.appointment_id == appointment_id)
            .where(AppointmentRequest.user_id == patient_id)
            .exists()
        )
        stmt = (
            update(Appointment)
            .where(Appointment.id == appointment_id)
            .where(Appointment.doctor_id == doctor_id)
            .where(Appointment.status == AppointmentStatus.AVAILABLE.value)
            .where(has_request)
            .values(status=AppointmentStatus.BOOKED.value, patient_id=patient_id, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.exec(stmt)
            if result.rowcount != 1:
                self.session.rollback()
                return None
            self.session.exec(delete(AppointmentRequest).where(AppointmentRequest.appointment_id == appointment_id))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return self.get_by_id(appointment_id)

    def transition(self, appointment_id: str, from_statuses: List[str], to_status: str, clear_patient: bool = False) -> Optional[AppointmentDto]:
        values = {"status": to_status, "updated_at": utc_now()}
        if clear_patient:
            values["patient_id"] = None
        stmt = (
            update(Appointment)
            .where(Appointment.id == appointment_id)
            .where(Appointment.status.in_(from_statuses))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.exec(stmt)
            if result.rowcount != 1:
                self.session.rollback()
                return None
            self.session.exec(delete(AppointmentRequest).where(AppointmentRequest.appointment_id == appointment_id))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return self.get_by_id(appointment_id)

    def update_fields(self, appointment_id: str, fields: dict) -> AppointmentDto:
        self.session.exec(
            update(Appointment)
            .where(Appointment.id == appointment_id)
            .values(**fields, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return self.get_by_id(appointment_id)

    def delete(self, appointment_id: str) -> None:
        self.session.exec(delete(AppointmentRequest).where(AppointmentRequest.appointment_id == appointment_id))
        self.session.exec(delete(Appointment).where(Appointment.id == appointment_id))
        self.session.commit()

    def list_for_doctor(self, doctor_id: str) -> List[AppointmentDto]:
        rows = self.session.exec(
            select(Appointment)
            .where(Appointment.doctor_id == doctor_id)
            .order_by(Appointment.appointment_date)
        ).all()
        return self._to_dtos(list(rows))

    def list_for_patient(self, patient_id: str) -> List[AppointmentDto]:
        rows = self.session.exec(
            select(Appointment)
            .where(Appointment.patient_id == patient_id)
            .order_by(Appointment.appointment_date.desc())
        ).all()
        return self._to_dtos(list(rows))

    def list_by_status(self, status: str) -> List[AppointmentDto]:
        rows = self.session.exec(
            select(Appointment)
            .where(Appointment.status == status)
            .order_by(Appointment.appointment_date)
        ).all()
        return self._to_dtos(list(rows))
