# Routers package
from . import appointments_router
from . import chat_router
from . import chat_socket_router

__all__ = [
    "appointments_router",
    "chat_router",
    "chat_socket_router",
]
