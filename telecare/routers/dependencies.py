from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from ..application.ports.identity_provider import Identity, IdentityProvider, Role
from ..application.services.appointments_service import AppointmentsService
from ..application.services.conversation_directory import ConversationDirectory
from ..application.services.message_exchange import MessageExchange
from ..application.services.realtime_router import RealtimeSessionRouter
from ..core.config import settings
from ..database import get_session
from ..exceptions import AuthenticationError, ForbiddenError
from ..infrastructure.audit.std_logger import StdAuditLogger
from ..infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from ..infrastructure.persistence.sqlalchemy.repositories.conversations_repository_sql import SqlConversationsRepository
from ..infrastructure.persistence.sqlalchemy.repositories.messages_repository_sql import SqlMessagesRepository

# Auth scheme
oauth2_scheme = HTTPBearer(auto_error=False)


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    return provider.verify(credentials.credentials)


def require_doctor(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != Role.DOCTOR:
        raise ForbiddenError("Doctor access required")
    return identity


def require_patient(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != Role.PATIENT:
        raise ForbiddenError("Patient access required")
    return identity


def get_conversation_directory(session: Session = Depends(get_session)) -> ConversationDirectory:
    return ConversationDirectory(SqlConversationsRepository(session))


def get_appointments_service(
    session: Session = Depends(get_session),
    directory: ConversationDirectory = Depends(get_conversation_directory),
) -> AppointmentsService:
    return AppointmentsService(SqlAppointmentsRepository(session), directory, StdAuditLogger())


def build_message_exchange(state, session: Session, directory: ConversationDirectory) -> MessageExchange:
    return MessageExchange(
        directory=directory,
        messages=SqlMessagesRepository(session),
        rooms=state.rooms,
        locks=state.send_locks,
        max_content_length=settings.MAX_MESSAGE_LENGTH,
        max_attachments=settings.MAX_ATTACHMENTS,
    )


def get_message_exchange(
    request: Request,
    session: Session = Depends(get_session),
    directory: ConversationDirectory = Depends(get_conversation_directory),
) -> MessageExchange:
    return build_message_exchange(request.app.state, session, directory)


def build_realtime_router(state, session: Session) -> RealtimeSessionRouter:
    """Wire a session router whose store access is bound to ``session``.

    Rooms, the send locks and the identity provider are process wide and come
    from the application state.
    """
    directory = ConversationDirectory(SqlConversationsRepository(session))
    return RealtimeSessionRouter(
        directory=directory,
        exchange=build_message_exchange(state, session, directory),
        rooms=state.rooms,
        identity_provider=state.identity_provider,
    )
