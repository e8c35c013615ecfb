from typing import List
from fastapi import APIRouter, Depends
import logging

from ..application.ports.appointments_repo import AppointmentDto
from ..application.ports.identity_provider import Identity
from ..application.services.appointments_service import AppointmentsService
from ..schemas.appointments.appointment import (
    AppointmentCreate,
    AppointmentUpdate,
    AppointmentRequestCreate,
    ConfirmRequest,
    RejectRequest,
    AppointmentRequestResponse,
    AppointmentResponse,
    ConfirmResponse,
)
from ..schemas.common.common import ActionResponse
from .dependencies import get_appointments_service, get_current_identity, require_doctor, require_patient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def _to_response(a: AppointmentDto) -> AppointmentResponse:
    return AppointmentResponse(
        id=a.id,
        doctor_id=a.doctor_id,
        appointment_date=a.appointment_date,
        appointment_type=a.appointment_type,
        status=a.status,
        description=a.description,
        price=a.price,
        patient_id=a.patient_id,
        is_paid=a.is_paid,
        payment_date=a.payment_date,
        payment_ref=a.payment_ref,
        created_at=a.created_at,
        updated_at=a.updated_at,
        requests=[
            AppointmentRequestResponse(id=r.id, user_id=r.user_id, message=r.message, requested_at=r.requested_at)
            for r in a.requests
        ],
    )


@router.post("/", response_model=AppointmentResponse, status_code=201)
def create_appointment(
    payload: AppointmentCreate,
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    appt = appt_service.create(
        doctor.subject_id,
        payload.date,
        payload.time,
        payload.price,
        appointment_type=payload.appointment_type,
        description=payload.description,
    )
    logger.info(f"Doctor {doctor.subject_id} created appointment {appt.id}")
    return _to_response(appt)


@router.get("/doctor", response_model=List[AppointmentResponse])
def get_doctor_appointments(
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return [_to_response(a) for a in appt_service.list_for_doctor(doctor.subject_id)]


@router.get("/available", response_model=List[AppointmentResponse])
def get_available_appointments(
    current: Identity = Depends(get_current_identity),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    appts = appt_service.list_open()
    if not current.is_doctor:
        # patients do not see who else asked for a slot
        for a in appts:
            a.requests = [r for r in a.requests if r.user_id == current.subject_id]
    return [_to_response(a) for a in appts]


@router.get("/mine", response_model=List[AppointmentResponse])
def get_my_appointments(
    patient: Identity = Depends(require_patient),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return [_to_response(a) for a in appt_service.list_for_patient(patient.subject_id)]


@router.post("/request", response_model=AppointmentRequestResponse, status_code=201)
def request_appointment(
    payload: AppointmentRequestCreate,
    patient: Identity = Depends(require_patient),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    r = appt_service.submit_request(payload.appointment_id, patient.subject_id, payload.message)
    return AppointmentRequestResponse(id=r.id, user_id=r.user_id, message=r.message, requested_at=r.requested_at)


@router.patch("/confirm", response_model=ConfirmResponse)
def confirm_appointment_request(
    payload: ConfirmRequest,
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    appt, conversation = appt_service.confirm_request(doctor.subject_id, payload.user_id, payload.appointment_id)
    return ConfirmResponse(
        message="Appointment confirmed and conversation started",
        appointment=_to_response(appt),
        conversation_id=conversation.id,
    )


@router.patch("/reject", response_model=ActionResponse)
def reject_appointment_request(
    payload: RejectRequest,
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    appt_service.reject_request(doctor.subject_id, payload.request_id)
    return ActionResponse(message="Request rejected")


@router.get("/{appointment_id}/requests", response_model=List[AppointmentRequestResponse])
def get_appointment_requests(
    appointment_id: str,
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return [
        AppointmentRequestResponse(id=r.id, user_id=r.user_id, message=r.message, requested_at=r.requested_at)
        for r in appt_service.list_requests(doctor.subject_id, appointment_id)
    ]


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdate,
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    fields = payload.model_dump(exclude_unset=True)
    return _to_response(appt_service.update(doctor.subject_id, appointment_id, fields))


@router.delete("/{appointment_id}", status_code=204)
def delete_appointment(
    appointment_id: str,
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    appt_service.delete(doctor.subject_id, appointment_id)


@router.patch("/{appointment_id}/close", response_model=AppointmentResponse)
def close_appointment(
    appointment_id: str,
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return _to_response(appt_service.close(doctor.subject_id, appointment_id))


@router.patch("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    doctor: Identity = Depends(require_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    return _to_response(appt_service.cancel(doctor.subject_id, appointment_id))
