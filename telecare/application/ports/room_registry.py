from typing import Any, List, Protocol

from .identity_provider import Identity


class RealtimeConnection(Protocol):
    id: str
    identity: Identity

    async def emit(self, event: str, data: Any) -> None:
        ...


class RoomRegistry(Protocol):
    def join(self, room: str, connection: RealtimeConnection) -> None:
        ...

    def leave(self, room: str, connection: RealtimeConnection) -> None:
        ...

    def leave_all(self, connection: RealtimeConnection) -> None:
        ...

    def members(self, room: str) -> List[RealtimeConnection]:
        ...

    def rooms_of(self, connection: RealtimeConnection) -> List[str]:
        ...

    async def broadcast(self, room: str, event: str, data: Any) -> int:
        ...
