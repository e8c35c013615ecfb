from datetime import datetime, timezone

import pytest
from sqlmodel import Session

from telecare.application.ports.appointments_repo import AppointmentStatus
from telecare.application.ports.messages_repo import AttachmentDto
from telecare.application.services.appointments_service import AppointmentsService
from telecare.application.services.conversation_directory import ConversationDirectory
from telecare.database import build_engine, create_db_and_tables
from telecare.exceptions import ConflictError, DuplicateError
from telecare.infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from telecare.infrastructure.persistence.sqlalchemy.repositories.conversations_repository_sql import SqlConversationsRepository
from telecare.infrastructure.persistence.sqlalchemy.repositories.messages_repository_sql import SqlMessagesRepository


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'repositories.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


def _slot(repo: SqlAppointmentsRepository, doctor_id: str = "doc-1"):
    return repo.create(doctor_id, datetime(2030, 1, 15, 10, 0, tzinfo=timezone.utc), 50.0, "consultation", None)


def test_requests_are_unique_per_user(session):
    repo = SqlAppointmentsRepository(session)
    appt = _slot(repo)
    repo.add_request(appt.id, "pat-1", "first")
    with pytest.raises(DuplicateError):
        repo.add_request(appt.id, "pat-1", "again")
    repo.add_request(appt.id, "pat-2", None)

    assert [r.user_id for r in repo.get_by_id(appt.id).requests] == ["pat-1", "pat-2"]
    assert [a.id for a in repo.find_pending_for_user("pat-2")] == [appt.id]


def test_book_is_conditional_across_sessions(engine):
    with Session(engine) as setup:
        repo = SqlAppointmentsRepository(setup)
        appt = _slot(repo)
        repo.add_request(appt.id, "pat-1", None)
        repo.add_request(appt.id, "pat-2", None)

    with Session(engine) as first, Session(engine) as second:
        slow = SqlAppointmentsRepository(first)
        fast = SqlAppointmentsRepository(second)
        # both confirmers read the slot while it is still available
        assert slow.get_by_id(appt.id).status == AppointmentStatus.AVAILABLE.value
        assert fast.get_by_id(appt.id).status == AppointmentStatus.AVAILABLE.value

        won = fast.book(appt.id, "doc-1", "pat-2")
        lost = slow.book(appt.id, "doc-1", "pat-1")

        assert won.status == AppointmentStatus.BOOKED.value
        assert won.requests == []
        assert lost is None

    with Session(engine) as check:
        current = SqlAppointmentsRepository(check).get_by_id(appt.id)
        assert current.patient_id == "pat-2"
        assert current.requests == []


def test_book_requires_owner_and_pending_request(session):
    repo = SqlAppointmentsRepository(session)
    appt = _slot(repo)
    repo.add_request(appt.id, "pat-1", None)

    assert repo.book(appt.id, "doc-2", "pat-1") is None
    assert repo.book(appt.id, "doc-1", "pat-9") is None
    assert repo.get_by_id(appt.id).status == AppointmentStatus.AVAILABLE.value


def test_transition_and_remove_request(session):
    repo = SqlAppointmentsRepository(session)
    appt = _slot(repo)
    req = repo.add_request(appt.id, "pat-1", None)
    repo.add_request(appt.id, "pat-2", None)

    assert repo.remove_request(req.id) is True
    assert repo.remove_request(req.id) is False
    assert [r.user_id for r in repo.get_by_id(appt.id).requests] == ["pat-2"]

    assert repo.transition(appt.id, [AppointmentStatus.BOOKED.value], AppointmentStatus.CLOSED.value) is None
    cancelled = repo.transition(appt.id, [AppointmentStatus.AVAILABLE.value], AppointmentStatus.CANCELLED.value, clear_patient=True)
    assert cancelled.status == AppointmentStatus.CANCELLED.value
    assert cancelled.requests == []


def test_conversation_is_unique_per_appointment(session):
    appointments = SqlAppointmentsRepository(session)
    conversations = SqlConversationsRepository(session)
    appt = _slot(appointments)

    created = conversations.create("doc-1", "pat-1", appt.id)
    with pytest.raises(DuplicateError):
        conversations.create("doc-1", "pat-1", appt.id)

    directory = ConversationDirectory(conversations)
    assert directory.create_if_absent("doc-1", "pat-1", appt.id).id == created.id
    assert [c.id for c in conversations.list_for_participant("pat-1")] == [created.id]

    assert conversations.set_closed_by_appointment(appt.id) is True
    assert conversations.get_by_id(created.id).is_closed
    assert conversations.set_closed_by_appointment("appt-unknown") is False


def test_messages_keep_order_attachments_and_read_state(session):
    appointments = SqlAppointmentsRepository(session)
    conversation = SqlConversationsRepository(session).create("doc-1", "pat-1", _slot(appointments).id)
    messages = SqlMessagesRepository(session)

    messages.create(conversation.id, "doc-1", "doctor", "pat-1", "patient", "m1", "text", [])
    messages.create(
        conversation.id, "doc-1", "doctor", "pat-1", "patient", "", "file",
        [AttachmentDto(file_url="https://files.example/a.pdf", file_type="application/pdf", file_name="a.pdf")],
    )
    messages.create(conversation.id, "pat-1", "patient", "doc-1", "doctor", "m3", "text", [])

    history = messages.list_for_conversation(conversation.id)
    assert [m.content for m in history] == ["m1", "", "m3"]
    assert history[1].attachments[0].file_name == "a.pdf"
    assert history[0].id < history[1].id < history[2].id

    assert messages.mark_read(conversation.id, "pat-1") == 2
    assert [m.is_read for m in messages.list_for_conversation(conversation.id)] == [True, True, False]


def test_service_over_sql_confirms_once(engine):
    with Session(engine) as session:
        directory = ConversationDirectory(SqlConversationsRepository(session))
        service = AppointmentsService(SqlAppointmentsRepository(session), directory)
        appt = service.create("doc-1", "2030-01-15", "10:00", 50)
        service.submit_request(appt.id, "pat-1")
        service.submit_request(appt.id, "pat-2")

        booked, conversation = service.confirm_request("doc-1", "pat-2")
        retried, again = service.confirm_request("doc-1", "pat-2", appt.id)

        assert booked.patient_id == "pat-2"
        assert retried.id == booked.id
        assert again.id == conversation.id
        with pytest.raises(ConflictError):
            service.submit_request(appt.id, "pat-3")

        service.close("doc-1", appt.id)
        assert directory.get(conversation.id).is_closed


def test_update_fields_keeps_timestamps_in_utc(session):
    repo = SqlAppointmentsRepository(session)
    appt = _slot(repo)

    updated = repo.update_fields(appt.id, {"price": 65.0, "description": "extended"})

    assert updated.price == 65.0
    assert updated.description == "extended"
    assert updated.appointment_date == datetime(2030, 1, 15, 10, 0, tzinfo=timezone.utc)
    assert updated.updated_at.tzinfo is not None
    assert updated.updated_at >= updated.created_at
