"""WebSocket module for realtime messaging, co-editing and presence."""

from .events import (
    InboundEventType,
    OutboundEventType,
    TransportMessageType,
    build_message,
    parse_inbound_event,
)
from .handlers import BroadcastResult, EventRouter, event_router
from .manager import ConnectionManager, WebSocketConnection, manager
from .presence import (
    PRESENCE_OFFLINE,
    PRESENCE_ONLINE,
    PresenceTracker,
    presence_tracker,
)
from .registry import (
    InMemoryRoomRegistry,
    RoomRegistry,
    get_conversation_room,
    get_document_room,
    get_user_room,
)
from .room_auth import RoomAccessChecker, room_access_checker
from .rooms import RoomMembershipManager, membership

__all__ = [
    # Events
    "InboundEventType",
    "OutboundEventType",
    "TransportMessageType",
    "build_message",
    "parse_inbound_event",
    # Router
    "BroadcastResult",
    "EventRouter",
    "event_router",
    # Manager
    "ConnectionManager",
    "WebSocketConnection",
    "manager",
    # Presence
    "PresenceTracker",
    "presence_tracker",
    "PRESENCE_ONLINE",
    "PRESENCE_OFFLINE",
    # Registry
    "RoomRegistry",
    "InMemoryRoomRegistry",
    "get_conversation_room",
    "get_document_room",
    "get_user_room",
    # Room authorization
    "RoomAccessChecker",
    "room_access_checker",
    "RoomMembershipManager",
    "membership",
]
