"""Room registry: the process-wide room and presence maps.

Handlers never touch these maps directly; they go through the
RoomMembershipManager and PresenceTracker. The in-memory registry holds
only this worker's connections. Cross-worker delivery is handled by the
ConnectionManager's Redis fan-out, so swapping the registry does not
change the router.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


def get_conversation_room(conversation_id: str) -> str:
    """Room ID in format 'conversation:{id}'."""
    return f"conversation:{conversation_id}"


def get_document_room(document_id: str) -> str:
    """Room ID in format 'document:{id}'."""
    return f"document:{document_id}"


def get_user_room(user_id: str) -> str:
    """Room ID in format 'user:{id}'."""
    return f"user:{user_id}"


class RoomRegistry(ABC):
    """Storage for room membership and per-user presence."""

    @abstractmethod
    async def start(self) -> None:
        """Prepare the registry at process start."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop all rooms and presence records (process shutdown)."""

    @abstractmethod
    def add(self, room_id: str, connection_id: str) -> bool:
        """Add a connection to a room. Returns False if it was already a member."""

    @abstractmethod
    def discard(self, room_id: str, connection_id: str) -> None:
        """Remove a connection from a room, deleting the room when empty."""

    @abstractmethod
    def members(self, room_id: str) -> set[str]:
        """Connection IDs currently in a room."""

    @abstractmethod
    def rooms_of(self, connection_id: str) -> set[str]:
        """Room IDs a connection currently belongs to."""

    @abstractmethod
    def remove_connection(self, connection_id: str) -> list[str]:
        """Remove a connection from every room. Returns the rooms it left."""

    @abstractmethod
    def set_presence(self, user_id: str, status: str) -> None:
        """Record a user's presence status."""

    @abstractmethod
    def get_presence(self, user_id: str) -> Optional[str]:
        """Current presence status of a user, if any."""

    @abstractmethod
    def clear_presence(self, user_id: str) -> None:
        """Forget a user's presence record."""

    @property
    @abstractmethod
    def total_rooms(self) -> int:
        """Number of non-empty rooms."""


class InMemoryRoomRegistry(RoomRegistry):
    """Single-process registry backed by plain dicts and sets."""

    def __init__(self) -> None:
        # Map of room_id -> set of connection IDs
        self._rooms: dict[str, set[str]] = {}
        # Reverse index: connection_id -> set of room IDs
        self._connection_rooms: dict[str, set[str]] = {}
        # Map of user_id -> status string
        self._presence: dict[str, str] = {}
        self._started = False

    async def start(self) -> None:
        self._started = True
        logger.info("In-memory room registry started")

    async def clear(self) -> None:
        rooms = len(self._rooms)
        self._rooms.clear()
        self._connection_rooms.clear()
        self._presence.clear()
        self._started = False
        logger.info(f"In-memory room registry cleared ({rooms} rooms dropped)")

    @property
    def is_started(self) -> bool:
        return self._started

    def add(self, room_id: str, connection_id: str) -> bool:
        members = self._rooms.setdefault(room_id, set())
        if connection_id in members:
            return False
        members.add(connection_id)
        self._connection_rooms.setdefault(connection_id, set()).add(room_id)
        return True

    def discard(self, room_id: str, connection_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[room_id]

        rooms = self._connection_rooms.get(connection_id)
        if rooms is not None:
            rooms.discard(room_id)
            if not rooms:
                del self._connection_rooms[connection_id]

    def members(self, room_id: str) -> set[str]:
        return set(self._rooms.get(room_id, set()))

    def rooms_of(self, connection_id: str) -> set[str]:
        return set(self._connection_rooms.get(connection_id, set()))

    def remove_connection(self, connection_id: str) -> list[str]:
        rooms = list(self._connection_rooms.pop(connection_id, set()))
        for room_id in rooms:
            members = self._rooms.get(room_id)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._rooms[room_id]
        return rooms

    def set_presence(self, user_id: str, status: str) -> None:
        self._presence[user_id] = status

    def get_presence(self, user_id: str) -> Optional[str]:
        return self._presence.get(user_id)

    def clear_presence(self, user_id: str) -> None:
        self._presence.pop(user_id, None)

    @property
    def total_rooms(self) -> int:
        return len(self._rooms)


__all__ = [
    "RoomRegistry",
    "InMemoryRoomRegistry",
    "get_conversation_room",
    "get_document_room",
    "get_user_room",
]
