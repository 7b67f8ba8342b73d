"""Room membership: authorization-gated joins and leaves.

Unauthorized joins are dropped without telling the client, so room
existence is not leaked to outsiders. Membership is checked once, at
join time; later events from a member are not re-authorized.
"""

import logging

from .manager import ConnectionManager, WebSocketConnection, manager
from .room_auth import RoomAccessChecker, room_access_checker
from .registry import get_conversation_room, get_document_room, get_user_room

logger = logging.getLogger(__name__)


class RoomMembershipManager:
    """The only writer of room membership for live connections."""

    def __init__(
        self,
        connection_manager: ConnectionManager,
        access_checker: RoomAccessChecker,
    ) -> None:
        self._manager = connection_manager
        self._access = access_checker

    @property
    def _registry(self):
        return self._manager.registry

    def join_user_room(self, connection: WebSocketConnection) -> str:
        """Subscribe a connection to its own user-scoped room (no lookup)."""
        room_id = get_user_room(connection.user_id)
        self._registry.add(room_id, connection.connection_id)
        return room_id

    async def join_conversation(
        self,
        connection: WebSocketConnection,
        conversation_id: str,
    ) -> bool:
        """
        Join ``conversation:<id>`` if the user is a participant.

        Returns:
            bool: True if the connection is a member after the call
        """
        allowed = await self._access.is_conversation_participant(
            conversation_id, connection.user_id
        )
        room_id = get_conversation_room(conversation_id)
        if not allowed:
            logger.warning(f"Room access denied: user={connection.user_id}, room={room_id}")
            return False

        return self._admit(connection, room_id) is not None

    async def join_document(
        self,
        connection: WebSocketConnection,
        document_id: str,
    ) -> bool:
        """
        Join ``document:<id>`` if the user is a member of the owning project.

        Returns:
            bool: True only when the connection was newly added
        """
        allowed = await self._access.is_document_project_member(
            document_id, connection.user_id
        )
        room_id = get_document_room(document_id)
        if not allowed:
            logger.warning(f"Room access denied: user={connection.user_id}, room={room_id}")
            return False

        return self._admit(connection, room_id) is True

    def _admit(self, connection: WebSocketConnection, room_id: str):
        """
        Insert the membership once the lookup has resolved.

        Returns True when added, False when already a member, None when the
        connection disconnected while its lookup was in flight.
        """
        if not self._manager.is_connected(connection):
            logger.debug(
                f"Join abandoned, connection gone: user={connection.user_id}, room={room_id}"
            )
            return None

        added = self._registry.add(room_id, connection.connection_id)
        if added:
            logger.info(f"User {connection.user_id} joined {room_id}")
        return added

    def leave(self, connection: WebSocketConnection, room_id: str) -> None:
        self._registry.discard(room_id, connection.connection_id)

    def leave_all(self, connection: WebSocketConnection) -> list[str]:
        """Release every membership held by the connection."""
        rooms = self._registry.remove_connection(connection.connection_id)
        logger.debug(f"Released {len(rooms)} rooms for connection {connection.connection_id}")
        return rooms

    def is_member(self, connection: WebSocketConnection, room_id: str) -> bool:
        return connection.connection_id in self._registry.members(room_id)

    def rooms_of(self, connection: WebSocketConnection) -> set[str]:
        return self._registry.rooms_of(connection.connection_id)

    def room_size(self, room_id: str) -> int:
        return len(self._registry.members(room_id))


# Global instance wired to the global connection manager
membership = RoomMembershipManager(manager, room_access_checker)
