import asyncio
import copy
import itertools
from typing import Dict, List

import pytest

from telecare.application.ports.appointments_repo import (
    AppointmentDto,
    AppointmentRequestDto,
    AppointmentStatus,
)
from telecare.application.ports.conversations_repo import ConversationDto
from telecare.application.ports.identity_provider import Identity, Role
from telecare.application.ports.messages_repo import MessageDto
from telecare.application.services.appointments_service import AppointmentsService
from telecare.application.services.conversation_directory import ConversationDirectory
from telecare.application.services.message_exchange import MessageExchange
from telecare.application.services.realtime_router import RealtimeSessionRouter
from telecare.exceptions import DuplicateError
from telecare.infrastructure.identity.jwt_identity_provider import JwtIdentityProvider
from telecare.infrastructure.realtime.memory_room_registry import InMemoryRoomRegistry
from telecare.utils import utc_now

TEST_SECRET = "unit-test-secret"


class FakeAppointmentsRepo:
    def __init__(self):
        self._ids = itertools.count(1)
        self.appointments: Dict[str, AppointmentDto] = {}

    def create(self, doctor_id, appointment_date, price, appointment_type, description):
        now = utc_now()
        a = AppointmentDto(
            id=f"appt-{next(self._ids)}",
            doctor_id=doctor_id,
            appointment_date=appointment_date,
            appointment_type=appointment_type,
            status=AppointmentStatus.AVAILABLE.value,
            description=description,
            price=price,
            patient_id=None,
            is_paid=False,
            payment_date=None,
            payment_ref=None,
            created_at=now,
            updated_at=now,
        )
        self.appointments[a.id] = a
        return copy.deepcopy(a)

    def get_by_id(self, appointment_id):
        a = self.appointments.get(appointment_id)
        return copy.deepcopy(a) if a else None

    def add_request(self, appointment_id, user_id, message):
        a = self.appointments[appointment_id]
        if any(r.user_id == user_id for r in a.requests):
            raise DuplicateError("You have already requested this appointment")
        r = AppointmentRequestDto(f"req-{next(self._ids)}", appointment_id, user_id, message, utc_now())
        a.requests.append(r)
        return copy.deepcopy(r)

    def find_pending_for_user(self, user_id):
        return [
            copy.deepcopy(a) for a in self.appointments.values()
            if a.status == AppointmentStatus.AVAILABLE.value and any(r.user_id == user_id for r in a.requests)
        ]

    def get_request(self, request_id):
        for a in self.appointments.values():
            for r in a.requests:
                if r.id == request_id:
                    return copy.deepcopy(r)
        return None

    def remove_request(self, request_id):
        for a in self.appointments.values():
            for r in a.requests:
                if r.id == request_id:
                    a.requests.remove(r)
                    return True
        return False

    def book(self, appointment_id, doctor_id, patient_id):
        a = self.appointments.get(appointment_id)
        if (
            not a
            or a.doctor_id != doctor_id
            or a.status != AppointmentStatus.AVAILABLE.value
            or not any(r.user_id == patient_id for r in a.requests)
        ):
            return None
        a.status = AppointmentStatus.BOOKED.value
        a.patient_id = patient_id
        a.requests = []
        return copy.deepcopy(a)

    def transition(self, appointment_id, from_statuses, to_status, clear_patient=False):
        a = self.appointments.get(appointment_id)
        if not a or a.status not in from_statuses:
            return None
        a.status = to_status
        a.requests = []
        if clear_patient:
            a.patient_id = None
        return copy.deepcopy(a)

    def update_fields(self, appointment_id, fields):
        a = self.appointments[appointment_id]
        for key, value in fields.items():
            setattr(a, key, value)
        return copy.deepcopy(a)

    def delete(self, appointment_id):
        self.appointments.pop(appointment_id, None)

    def list_for_doctor(self, doctor_id):
        return [copy.deepcopy(a) for a in self.appointments.values() if a.doctor_id == doctor_id]

    def list_for_patient(self, patient_id):
        return [copy.deepcopy(a) for a in self.appointments.values() if a.patient_id == patient_id]

    def list_by_status(self, status):
        return [copy.deepcopy(a) for a in self.appointments.values() if a.status == status]


class FakeConversationsRepo:
    def __init__(self):
        self._ids = itertools.count(1)
        self.conversations: Dict[str, ConversationDto] = {}
        self.create_calls = 0

    def get_by_id(self, conversation_id):
        c = self.conversations.get(conversation_id)
        return copy.deepcopy(c) if c else None

    def get_by_appointment(self, appointment_id):
        c = next((c for c in self.conversations.values() if c.appointment_id == appointment_id), None)
        return copy.deepcopy(c) if c else None

    def create(self, doctor_id, patient_id, appointment_id):
        self.create_calls += 1
        if any(c.appointment_id == appointment_id for c in self.conversations.values()):
            raise DuplicateError("Conversation already exists for this appointment")
        c = ConversationDto(f"conv-{next(self._ids)}", doctor_id, patient_id, appointment_id, False, utc_now())
        self.conversations[c.id] = c
        return copy.deepcopy(c)

    def set_closed_by_appointment(self, appointment_id):
        matched = [c for c in self.conversations.values() if c.appointment_id == appointment_id]
        for c in matched:
            c.is_closed = True
        return bool(matched)

    def list_for_participant(self, user_id):
        return [copy.deepcopy(c) for c in self.conversations.values() if user_id in (c.doctor_id, c.patient_id)]


class FakeMessagesRepo:
    def __init__(self):
        self._ids = itertools.count(1)
        self.messages: List[MessageDto] = []

    def create(self, conversation_id, sender_id, sender_kind, receiver_id, receiver_kind, content, message_type, attachments):
        m = MessageDto(
            id=next(self._ids),
            conversation_id=conversation_id,
            sender_id=sender_id,
            sender_kind=sender_kind,
            receiver_id=receiver_id,
            receiver_kind=receiver_kind,
            content=content,
            message_type=message_type,
            attachments=list(attachments),
            sent_at=utc_now(),
        )
        self.messages.append(m)
        return copy.deepcopy(m)

    def list_for_conversation(self, conversation_id):
        return [copy.deepcopy(m) for m in self.messages if m.conversation_id == conversation_id]

    def mark_read(self, conversation_id, receiver_id):
        count = 0
        for m in self.messages:
            if m.conversation_id == conversation_id and m.receiver_id == receiver_id and not m.is_read:
                m.is_read = True
                count += 1
        return count


class FakeAuditLogger:
    def __init__(self):
        self.entries = []

    def log(self, action, actor_id, target_id=None, success=True, details=None):
        self.entries.append({"action": action, "actor_id": actor_id, "target_id": target_id, "success": success, "details": details})


class FakeConnection:
    _ids = itertools.count(1)

    def __init__(self, subject_id: str, role: Role = Role.PATIENT, fail: bool = False, yield_on_emit: bool = False):
        self.id = f"conn-{next(self._ids)}"
        self.identity = Identity(subject_id=subject_id, role=role)
        self.fail = fail
        self.yield_on_emit = yield_on_emit
        self.events = []

    async def emit(self, event, data):
        if self.yield_on_emit:
            await asyncio.sleep(0)
        if self.fail:
            raise ConnectionError("socket closed")
        self.events.append((event, data))

    def received(self, event: str) -> list:
        return [d for e, d in self.events if e == event]


@pytest.fixture
def appointments_repo():
    return FakeAppointmentsRepo()


@pytest.fixture
def conversations_repo():
    return FakeConversationsRepo()


@pytest.fixture
def messages_repo():
    return FakeMessagesRepo()


@pytest.fixture
def audit():
    return FakeAuditLogger()


@pytest.fixture
def directory(conversations_repo):
    return ConversationDirectory(conversations_repo)


@pytest.fixture
def service(appointments_repo, directory, audit):
    return AppointmentsService(appointments_repo, directory, audit)


@pytest.fixture
def rooms():
    return InMemoryRoomRegistry()


@pytest.fixture
def exchange(directory, messages_repo, rooms):
    return MessageExchange(directory=directory, messages=messages_repo, rooms=rooms)


@pytest.fixture
def identity_provider():
    return JwtIdentityProvider(TEST_SECRET)


@pytest.fixture
def session_router(directory, exchange, rooms, identity_provider):
    return RealtimeSessionRouter(directory=directory, exchange=exchange, rooms=rooms, identity_provider=identity_provider)


@pytest.fixture
def connect():
    def _connect(subject_id: str, role: Role = Role.PATIENT, **kwargs) -> FakeConnection:
        return FakeConnection(subject_id, role, **kwargs)
    return _connect


@pytest.fixture
def booked(service):
    """Appointment of doc-1 booked by pat-1, with its open conversation."""

    def _book(doctor_id: str = "doc-1", patient_id: str = "pat-1"):
        appt = service.create(doctor_id, "2030-01-15", "10:00", 50)
        service.submit_request(appt.id, patient_id)
        return service.confirm_request(doctor_id, patient_id, appt.id)
    return _book
