# Models package (re-export feature modules for stable imports)
from .scheduling.appointment import Appointment, AppointmentRequest
from .chat.conversation import Conversation
from .chat.message import Message

__all__ = [
    "Appointment",
    "AppointmentRequest",
    "Conversation",
    "Message",
]
