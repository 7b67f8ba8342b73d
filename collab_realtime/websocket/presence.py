"""Presence tracking for connected users.

Presence is ephemeral: statuses live only in the room registry, are
broadcast at-most-once to every connected client and are never persisted.
Any client-supplied status string is accepted as-is. No snapshot of other
users' presence is sent when a client connects.
"""

import logging
from typing import Optional

from .events import OutboundEventType, PresenceChangePayload, build_message
from .manager import ConnectionManager, WebSocketConnection, manager

logger = logging.getLogger(__name__)

PRESENCE_ONLINE = "online"
PRESENCE_OFFLINE = "offline"


class PresenceTracker:
    """Per-user status records plus process-wide presence broadcasts."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self._manager = connection_manager

    def track_connect(self, connection: WebSocketConnection) -> None:
        """Record the user as online without announcing it."""
        registry = self._manager.registry
        if registry.get_presence(connection.user_id) is None:
            registry.set_presence(connection.user_id, PRESENCE_ONLINE)

    def get_status(self, user_id: str) -> Optional[str]:
        return self._manager.registry.get_presence(user_id)

    async def set_status(self, connection: WebSocketConnection, status: str) -> int:
        """
        Store a user's status and announce it to every connected client.

        The sender receives its own announcement too.

        Returns:
            int: Number of local recipients
        """
        self._manager.registry.set_presence(connection.user_id, status)
        return await self._announce(connection.user_id, status)

    async def mark_offline(self, connection: WebSocketConnection) -> int:
        """Drop the user's record and announce ``offline`` process-wide."""
        self._manager.registry.clear_presence(connection.user_id)
        return await self._announce(connection.user_id, PRESENCE_OFFLINE)

    async def _announce(self, user_id: str, status: str) -> int:
        message = build_message(
            OutboundEventType.USER_PRESENCE_CHANGE,
            PresenceChangePayload(user_id=user_id, status=status),
        )
        recipients = await self._manager.broadcast_to_all(message)
        logger.debug(f"Presence: user={user_id}, status={status}, recipients={recipients}")
        return recipients


# Global singleton instance
presence_tracker = PresenceTracker(manager)


__all__ = [
    "PresenceTracker",
    "presence_tracker",
    "PRESENCE_ONLINE",
    "PRESENCE_OFFLINE",
]
