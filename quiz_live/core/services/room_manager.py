"""Process-local room membership: live connections grouped by join code."""

from __future__ import annotations


class RoomManager:
    """Tracks which connections belong to which room.

    Membership is not persisted; after a restart participants reconnect and
    rejoin their room.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, set[str]] = {}
        self._connection_rooms: dict[str, str] = {}

    @staticmethod
    def room_name(join_code: str) -> str:
        return f"quiz-{join_code.upper()}"

    def join(self, connection_id: str, join_code: str) -> str:
        """Add a connection to a room, leaving any room it was in before."""
        room = self.room_name(join_code)
        previous = self._connection_rooms.get(connection_id)
        if previous is not None and previous != room:
            self.leave(connection_id)
        self._rooms.setdefault(room, set()).add(connection_id)
        self._connection_rooms[connection_id] = room
        return room

    def leave(self, connection_id: str) -> str | None:
        room = self._connection_rooms.pop(connection_id, None)
        if room is None:
            return None
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[room]
        return room

    def members(self, join_code: str) -> set[str]:
        return set(self._rooms.get(self.room_name(join_code), set()))
