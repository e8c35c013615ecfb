import asyncio
from typing import Any, Dict, List
import logging

from ...application.ports.room_registry import RealtimeConnection, RoomRegistry

logger = logging.getLogger(__name__)


class InMemoryRoomRegistry(RoomRegistry):
    def __init__(self, send_timeout: float = 5.0) -> None:
        # { room: { connection_id: connection } }
        self._rooms: Dict[str, Dict[str, RealtimeConnection]] = {}
        self.send_timeout = send_timeout

    def join(self, room: str, connection: RealtimeConnection) -> None:
        self._rooms.setdefault(room, {})[connection.id] = connection

    def leave(self, room: str, connection: RealtimeConnection) -> None:
        members = self._rooms.get(room)
        if not members:
            return
        members.pop(connection.id, None)
        if not members:
            del self._rooms[room]

    def leave_all(self, connection: RealtimeConnection) -> None:
        for room in list(self._rooms):
            self.leave(room, connection)

    def members(self, room: str) -> List[RealtimeConnection]:
        return list(self._rooms.get(room, {}).values())

    def rooms_of(self, connection: RealtimeConnection) -> List[str]:
        return [room for room, members in self._rooms.items() if connection.id in members]

    async def broadcast(self, room: str, event: str, data: Any) -> int:
        results = await asyncio.gather(*(self._deliver(c, event, data) for c in self.members(room)))
        return sum(results)

    async def _deliver(self, connection: RealtimeConnection, event: str, data: Any) -> bool:
        try:
            await asyncio.wait_for(connection.emit(event, data), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Dropping connection {connection.id} from rooms: send timed out after {self.send_timeout}s")
        except Exception as e:
            logger.warning(f"Dropping connection {connection.id} from rooms after failed send: {e}")
        self.leave_all(connection)
        return False
