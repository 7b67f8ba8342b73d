"""WebSocket connection manager with room-based broadcasts and Redis pub/sub.

This module provides:
- Connection registration keyed by a per-connection ID
- Room broadcasts that skip the originating connection
- Process-wide broadcasts (presence)
- Redis pub/sub fan-out so every worker delivers to its local connections
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from uuid import uuid4

from fastapi import WebSocket

from ..services.auth_service import TokenData
from ..services.redis_service import RedisService, redis_service
from .registry import InMemoryRoomRegistry, RoomRegistry

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class WebSocketConnection:
    """Represents an authenticated WebSocket connection."""

    websocket: WebSocket
    user_id: str
    email: Optional[str] = None
    connection_id: str = field(default_factory=lambda: uuid4().hex)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __hash__(self) -> int:
        """Hash by connection id for set operations."""
        return hash(self.connection_id)

    def __eq__(self, other: object) -> bool:
        """Equality check by connection id."""
        if not isinstance(other, WebSocketConnection):
            return False
        return self.connection_id == other.connection_id


class ConnectionManager:
    """
    Owns every live connection on this worker and delivers messages to them.

    Room state lives in the injected RoomRegistry; this class only resolves
    connection IDs to sockets. When Redis is connected, broadcasts are
    published and delivered by each worker's pub/sub handler, so a message
    reaches every member exactly once regardless of which worker holds it.
    """

    # Redis pub/sub channels
    _BROADCAST_CHANNEL = "ws:broadcast"
    _ALL_CHANNEL = "ws:all"

    def __init__(
        self,
        registry: Optional[RoomRegistry] = None,
        redis: Optional[RedisService] = None,
    ) -> None:
        self._registry = registry or InMemoryRoomRegistry()
        self._redis = redis or redis_service
        # Map of connection_id -> connection object
        self._connections: dict[str, WebSocketConnection] = {}
        # Map of user_id -> set of connection IDs
        self._user_connections: dict[str, set[str]] = {}
        self._redis_initialized = False

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    async def initialize_redis(self) -> None:
        """Set up Redis pub/sub handlers for cross-worker messaging."""
        if self._redis_initialized:
            return

        await self._redis.subscribe(self._BROADCAST_CHANNEL, self._handle_redis_broadcast)
        await self._redis.subscribe(self._ALL_CHANNEL, self._handle_redis_all)
        self._redis_initialized = True
        logger.info("ConnectionManager Redis pub/sub initialized")

    async def _handle_redis_broadcast(self, data: dict) -> None:
        """Deliver a room broadcast published by any worker to local members."""
        room_id = data.get("room_id")
        message = data.get("message")
        if not room_id or not message:
            return

        await self._deliver_local(
            self._registry.members(room_id),
            message,
            exclude_id=data.get("exclude_conn_id"),
        )

    async def _handle_redis_all(self, data: dict) -> None:
        """Deliver a process-wide broadcast published by any worker."""
        message = data.get("message")
        if not message:
            return

        await self._deliver_local(
            list(self._connections),
            message,
            exclude_id=data.get("exclude_conn_id"),
        )

    @property
    def total_connections(self) -> int:
        """Get total number of active connections on this worker."""
        return len(self._connections)

    @property
    def total_rooms(self) -> int:
        """Get total number of active rooms on this worker."""
        return self._registry.total_rooms

    def get_connection(self, connection_id: str) -> Optional[WebSocketConnection]:
        return self._connections.get(connection_id)

    def is_connected(self, connection: WebSocketConnection) -> bool:
        return connection.connection_id in self._connections

    def get_user_connections_count(self, user_id: str) -> int:
        """Get number of connections for a user."""
        return len(self._user_connections.get(user_id, set()))

    async def connect(
        self,
        websocket: WebSocket,
        identity: TokenData,
    ) -> WebSocketConnection:
        """
        Register an authenticated WebSocket and accept it.

        The connection is registered before the accept frame goes out so a
        peer that reacts to our accept can already reach it.

        Args:
            websocket: The WebSocket instance (not yet accepted)
            identity: The verified token identity

        Returns:
            WebSocketConnection: The connection wrapper object
        """
        connection = WebSocketConnection(
            websocket=websocket,
            user_id=identity.user_id,
            email=identity.email,
        )
        self._connections[connection.connection_id] = connection
        self._user_connections.setdefault(identity.user_id, set()).add(
            connection.connection_id
        )

        try:
            await websocket.accept()
        except Exception:
            self._forget(connection)
            raise

        logger.info(
            f"WebSocket connected: user={connection.user_id}, "
            f"connection={connection.connection_id}, "
            f"total_connections={self.total_connections}"
        )
        return connection

    async def disconnect(self, connection: WebSocketConnection) -> bool:
        """
        Forget a connection so no further messages are delivered to it.

        Room memberships are released separately by the membership manager.

        Args:
            connection: The connection to drop

        Returns:
            bool: False if the connection was already gone
        """
        if connection.connection_id not in self._connections:
            return False

        self._forget(connection)

        logger.info(
            f"WebSocket disconnected: user={connection.user_id}, "
            f"connection={connection.connection_id}, "
            f"total_connections={self.total_connections}"
        )
        return True

    def _forget(self, connection: WebSocketConnection) -> None:
        self._connections.pop(connection.connection_id, None)
        user_conns = self._user_connections.get(connection.user_id)
        if user_conns is not None:
            user_conns.discard(connection.connection_id)
            if not user_conns:
                del self._user_connections[connection.user_id]

    async def send_personal(
        self,
        connection: WebSocketConnection,
        message: dict[str, Any],
    ) -> bool:
        """
        Send a message to a specific connection.

        Returns:
            bool: True if sent successfully, False otherwise
        """
        try:
            await connection.websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Send failed for connection {connection.connection_id}: {e}")
            return False

    async def broadcast_to_room(
        self,
        room_id: str,
        message: dict[str, Any],
        exclude: Optional[WebSocketConnection] = None,
    ) -> int:
        """
        Broadcast a message to every connection in a room except ``exclude``.

        Args:
            room_id: The room to broadcast to
            message: The message to send
            exclude: Optional connection to skip (the sender)

        Returns:
            int: Number of local recipients
        """
        exclude_id = exclude.connection_id if exclude else None

        if self._redis.is_connected:
            await self._redis.publish(
                self._BROADCAST_CHANNEL,
                {
                    "room_id": room_id,
                    "message": message,
                    "exclude_conn_id": exclude_id,
                },
            )
            # Redis delivers to all workers including this one
            return len(self._registry.members(room_id) - {exclude_id})

        return await self._deliver_local(
            self._registry.members(room_id), message, exclude_id=exclude_id
        )

    async def broadcast_to_all(
        self,
        message: dict[str, Any],
        exclude: Optional[WebSocketConnection] = None,
    ) -> int:
        """
        Broadcast a message to every connected client on every worker.

        Returns:
            int: Number of local recipients
        """
        exclude_id = exclude.connection_id if exclude else None

        if self._redis.is_connected:
            await self._redis.publish(
                self._ALL_CHANNEL,
                {"message": message, "exclude_conn_id": exclude_id},
            )
            return len(set(self._connections) - {exclude_id})

        return await self._deliver_local(
            list(self._connections), message, exclude_id=exclude_id
        )

    async def _deliver_local(
        self,
        connection_ids: Iterable[str],
        message: dict[str, Any],
        exclude_id: Optional[str] = None,
    ) -> int:
        """Send to the local connections among ``connection_ids`` concurrently."""
        targets = [
            self._connections[conn_id]
            for conn_id in connection_ids
            if conn_id != exclude_id and conn_id in self._connections
        ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self.send_personal(conn, message) for conn in targets),
            return_exceptions=True,
        )
        success_count = sum(1 for r in results if r is True)
        logger.debug(
            f"Delivered {message.get('type')}: {success_count}/{len(targets)} successful"
        )
        return success_count


# Global singleton instance
manager = ConnectionManager()
