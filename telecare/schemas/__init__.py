# Schemas package (re-export feature modules for stable imports)
from .appointments.appointment import (
    AppointmentCreate,
    AppointmentUpdate,
    AppointmentRequestCreate,
    ConfirmRequest,
    RejectRequest,
    AppointmentRequestResponse,
    AppointmentResponse,
    ConfirmResponse,
)
from .chat.chat import (
    AttachmentSchema,
    ConversationResponse,
    MessageResponse,
    SendMessageRequest,
    MarkReadResponse,
)
from .common.common import ErrorResponse, ActionResponse
