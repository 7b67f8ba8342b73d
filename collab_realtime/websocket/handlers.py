"""Event router: dispatches inbound events and fans out the results.

Each inbound event is handled on its own. Any failure (malformed frame,
lookup error, send error) is logged and the event dropped; nothing is
sent back to the client and the connection stays open.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, get_args

from pydantic import ValidationError

from ..services.auth_service import TokenData
from .events import (
    DocumentChangeEvent,
    DocumentChangePayload,
    InboundEvent,
    JoinConversationEvent,
    JoinDocumentEvent,
    NewMessageEvent,
    NewMessagePayload,
    OutboundEventType,
    OutgoingMessage,
    SetPresenceEvent,
    TypingEvent,
    UserJoinedPayload,
    UserTypingPayload,
    build_message,
    parse_inbound_event,
)
from .manager import ConnectionManager, WebSocketConnection, manager
from .presence import PresenceTracker, presence_tracker
from .registry import get_conversation_room, get_document_room
from .rooms import RoomMembershipManager, membership

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    """Result of a broadcast operation."""

    room_id: Optional[str]
    recipients: int
    message_type: str


Handler = Callable[[WebSocketConnection, Any], Awaitable[Optional[BroadcastResult]]]


class EventRouter:
    """
    Routes events for every live connection on this worker.

    Handler table (one entry per inbound variant):
    - join-conversation: participant check, join conversation room
    - join-document: project member check, join document room, user-joined
    - document-change: member only, relay to the rest of the document room
    - new-message: member only, relay summary to the rest of the conversation
    - typing: member only, relay to the rest of the conversation
    - set-presence: announce to every connected client
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        rooms: RoomMembershipManager,
        presence: PresenceTracker,
    ) -> None:
        self._manager = connection_manager
        self._rooms = rooms
        self._presence = presence
        self._handlers: dict[type, Handler] = {
            JoinConversationEvent: self._on_join_conversation,
            JoinDocumentEvent: self._on_join_document,
            DocumentChangeEvent: self._on_document_change,
            NewMessageEvent: self._on_new_message,
            TypingEvent: self._on_typing,
            SetPresenceEvent: self._on_set_presence,
        }
        missing = set(get_args(get_args(InboundEvent)[0])) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for inbound events: {sorted(m.__name__ for m in missing)}")

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    async def on_connect(self, websocket, identity: TokenData) -> WebSocketConnection:
        """Register an authenticated socket and subscribe it to its user room."""
        connection = await self._manager.connect(websocket, identity)
        self._rooms.join_user_room(connection)
        self._presence.track_connect(connection)
        return connection

    async def on_disconnect(self, connection: WebSocketConnection) -> None:
        """
        Release all memberships and announce ``offline`` exactly once.

        Safe to call more than once for the same connection.
        """
        if not await self._manager.disconnect(connection):
            return
        self._rooms.leave_all(connection)
        try:
            await self._presence.mark_offline(connection)
        except Exception as e:
            logger.error(f"Offline broadcast failed for user {connection.user_id}: {e}")

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def route(
        self,
        connection: WebSocketConnection,
        frame: dict[str, Any],
    ) -> Optional[BroadcastResult]:
        """
        Validate one decoded frame and run its handler.

        Returns:
            Optional[BroadcastResult]: What was broadcast, or None when the
            event was dropped or produced no broadcast
        """
        try:
            event = parse_inbound_event(frame)
        except ValidationError as e:
            logger.warning(
                f"Dropping invalid event from user {connection.user_id}: "
                f"type={frame.get('type')!r}, errors={e.error_count()}"
            )
            return None

        logger.debug(f"Routing event: user={connection.user_id}, type={event.type}")

        handler = self._handlers[type(event)]
        try:
            return await handler(connection, event)
        except Exception as e:
            logger.error(
                f"Handler for {event.type} failed for user {connection.user_id}: {e}",
                exc_info=True,
            )
            return None

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def _on_join_conversation(
        self,
        connection: WebSocketConnection,
        event: JoinConversationEvent,
    ) -> None:
        await self._rooms.join_conversation(connection, event.data)

    async def _on_join_document(
        self,
        connection: WebSocketConnection,
        event: JoinDocumentEvent,
    ) -> Optional[BroadcastResult]:
        document_id = event.data
        if not await self._rooms.join_document(connection, document_id):
            return None

        room_id = get_document_room(document_id)
        message = build_message(
            OutboundEventType.USER_JOINED,
            UserJoinedPayload(user_id=connection.user_id, document_id=document_id),
        )
        recipients = await self._manager.broadcast_to_room(room_id, message, exclude=connection)
        return BroadcastResult(room_id, recipients, OutboundEventType.USER_JOINED.value)

    async def _on_document_change(
        self,
        connection: WebSocketConnection,
        event: DocumentChangeEvent,
    ) -> Optional[BroadcastResult]:
        data = event.data
        room_id = get_document_room(data.document_id)
        if not self._rooms.is_member(connection, room_id):
            logger.debug(f"document-change from non-member: user={connection.user_id}, room={room_id}")
            return None

        # Relayed verbatim; no merge or conflict resolution happens here
        message = build_message(
            OutboundEventType.DOCUMENT_CHANGE,
            DocumentChangePayload(
                document_id=data.document_id,
                content=data.content,
                position=data.position,
                user_id=connection.user_id,
            ),
        )
        recipients = await self._manager.broadcast_to_room(room_id, message, exclude=connection)
        return BroadcastResult(room_id, recipients, OutboundEventType.DOCUMENT_CHANGE.value)

    async def _on_new_message(
        self,
        connection: WebSocketConnection,
        event: NewMessageEvent,
    ) -> Optional[BroadcastResult]:
        data = event.data
        room_id = get_conversation_room(data.conversation_id)
        if not self._rooms.is_member(connection, room_id):
            logger.debug(f"new-message from non-member: user={connection.user_id}, room={room_id}")
            return None

        message = build_message(
            OutboundEventType.NEW_MESSAGE,
            NewMessagePayload(
                conversation_id=data.conversation_id,
                message=OutgoingMessage(
                    id=data.message.id,
                    content=data.message.content,
                    sender_id=connection.user_id,
                    created_at=data.message.created_at,
                ),
            ),
        )
        recipients = await self._manager.broadcast_to_room(room_id, message, exclude=connection)
        logger.info(
            f"Message relayed: conversation={data.conversation_id}, "
            f"sender={connection.user_id}, recipients={recipients}"
        )
        return BroadcastResult(room_id, recipients, OutboundEventType.NEW_MESSAGE.value)

    async def _on_typing(
        self,
        connection: WebSocketConnection,
        event: TypingEvent,
    ) -> Optional[BroadcastResult]:
        data = event.data
        room_id = get_conversation_room(data.conversation_id)
        if not self._rooms.is_member(connection, room_id):
            return None

        message = build_message(
            OutboundEventType.USER_TYPING,
            UserTypingPayload(user_id=connection.user_id, is_typing=data.is_typing),
        )
        recipients = await self._manager.broadcast_to_room(room_id, message, exclude=connection)
        return BroadcastResult(room_id, recipients, OutboundEventType.USER_TYPING.value)

    async def _on_set_presence(
        self,
        connection: WebSocketConnection,
        event: SetPresenceEvent,
    ) -> BroadcastResult:
        recipients = await self._presence.set_status(connection, event.data)
        return BroadcastResult(None, recipients, OutboundEventType.USER_PRESENCE_CHANGE.value)


# Global router wired to the global manager, membership and presence tracker
event_router = EventRouter(manager, membership, presence_tracker)


__all__ = [
    "BroadcastResult",
    "EventRouter",
    "event_router",
]
