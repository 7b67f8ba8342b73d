"""Shared pytest fixtures for realtime layer tests."""

import os
import sys
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from collab_realtime.services.auth_service import TokenData, create_access_token
from collab_realtime.websocket.handlers import EventRouter
from collab_realtime.websocket.manager import ConnectionManager
from collab_realtime.websocket.presence import PresenceTracker
from collab_realtime.websocket.registry import InMemoryRoomRegistry
from collab_realtime.websocket.room_auth import RoomAccessChecker
from collab_realtime.websocket.rooms import RoomMembershipManager


def sent_messages(websocket: AsyncMock) -> list[dict[str, Any]]:
    """All JSON messages sent to a mocked websocket, in order."""
    return [call.args[0] for call in websocket.send_json.await_args_list]


def sent_of_type(websocket: AsyncMock, message_type: str) -> list[dict[str, Any]]:
    """Messages of one type sent to a mocked websocket."""
    return [m for m in sent_messages(websocket) if m.get("type") == message_type]


@pytest.fixture
def registry() -> InMemoryRoomRegistry:
    """Fresh in-memory room registry."""
    return InMemoryRoomRegistry()


@pytest.fixture
def conn_manager(registry: InMemoryRoomRegistry) -> ConnectionManager:
    """Connection manager without Redis (local delivery only)."""
    return ConnectionManager(registry=registry)


@pytest.fixture
def access_checker() -> MagicMock:
    """Room access checker that allows everything unless reconfigured."""
    checker = MagicMock(spec=RoomAccessChecker)
    checker.is_conversation_participant = AsyncMock(return_value=True)
    checker.is_document_project_member = AsyncMock(return_value=True)
    return checker


@pytest.fixture
def rooms(conn_manager: ConnectionManager, access_checker: MagicMock) -> RoomMembershipManager:
    return RoomMembershipManager(conn_manager, access_checker)


@pytest.fixture
def presence(conn_manager: ConnectionManager) -> PresenceTracker:
    return PresenceTracker(conn_manager)


@pytest.fixture
def router(
    conn_manager: ConnectionManager,
    rooms: RoomMembershipManager,
    presence: PresenceTracker,
) -> EventRouter:
    """Event router wired to fresh, isolated components."""
    return EventRouter(conn_manager, rooms, presence)


@pytest.fixture
def make_identity() -> Callable[..., TokenData]:
    """Factory for verified identities."""
    def _make(user_id: str | None = None, email: str | None = None) -> TokenData:
        uid = user_id or str(uuid4())
        return TokenData(user_id=uid, email=email or f"{uid}@example.edu")
    return _make


@pytest.fixture
def auth_token() -> Callable[..., str]:
    """Factory for signed tokens in the REST layer's format."""
    def _make(user_id: str | None = None, email: str = "student@example.edu") -> str:
        return create_access_token({"id": user_id or str(uuid4()), "email": email})
    return _make
