"""Wire events for the realtime layer.

Every frame is a JSON object ``{"type": <event name>, "data": <payload>}``.
Inbound events form a closed discriminated union so the router can map
each variant to exactly one handler; outbound payloads are built from
typed models and serialized with camelCase keys.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class InboundEventType(str, Enum):
    """Client -> server application events."""

    JOIN_CONVERSATION = "join-conversation"
    JOIN_DOCUMENT = "join-document"
    DOCUMENT_CHANGE = "document-change"
    NEW_MESSAGE = "new-message"
    TYPING = "typing"
    SET_PRESENCE = "set-presence"


class OutboundEventType(str, Enum):
    """Server -> client application events."""

    USER_JOINED = "user-joined"
    DOCUMENT_CHANGE = "document-change"
    NEW_MESSAGE = "new-message"
    USER_TYPING = "user-typing"
    USER_PRESENCE_CHANGE = "user-presence-change"


class TransportMessageType(str, Enum):
    """Keepalive frames, handled by the endpoint rather than the router."""

    PING = "ping"
    PONG = "pong"


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Inbound payloads
# =============================================================================


class DocumentChangeData(CamelModel):
    """Edit of a document; content and position are relayed untouched."""

    document_id: str
    content: Any = None
    position: Any = None


class IncomingMessage(CamelModel):
    """Summary of a message already persisted through the REST layer."""

    id: Any
    content: Any
    created_at: Any = None


class NewMessageData(CamelModel):
    conversation_id: str
    message: IncomingMessage


class TypingData(CamelModel):
    conversation_id: str
    is_typing: bool


class JoinConversationEvent(BaseModel):
    type: Literal["join-conversation"]
    data: str


class JoinDocumentEvent(BaseModel):
    type: Literal["join-document"]
    data: str


class DocumentChangeEvent(BaseModel):
    type: Literal["document-change"]
    data: DocumentChangeData


class NewMessageEvent(BaseModel):
    type: Literal["new-message"]
    data: NewMessageData


class TypingEvent(BaseModel):
    type: Literal["typing"]
    data: TypingData


class SetPresenceEvent(BaseModel):
    type: Literal["set-presence"]
    data: str


InboundEvent = Annotated[
    Union[
        JoinConversationEvent,
        JoinDocumentEvent,
        DocumentChangeEvent,
        NewMessageEvent,
        TypingEvent,
        SetPresenceEvent,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundEvent)


def parse_inbound_event(frame: Any) -> InboundEvent:
    """
    Validate a decoded JSON frame into one inbound event variant.

    Raises:
        pydantic.ValidationError: Unknown event type or malformed payload
    """
    return _inbound_adapter.validate_python(frame)


# =============================================================================
# Outbound payloads
# =============================================================================


class UserJoinedPayload(CamelModel):
    user_id: str
    document_id: str


class DocumentChangePayload(CamelModel):
    document_id: str
    content: Any = None
    position: Any = None
    user_id: str


class OutgoingMessage(CamelModel):
    id: Any
    content: Any
    sender_id: str
    created_at: Any = None


class NewMessagePayload(CamelModel):
    conversation_id: str
    message: OutgoingMessage


class UserTypingPayload(CamelModel):
    user_id: str
    is_typing: bool


class PresenceChangePayload(CamelModel):
    user_id: str
    status: str


def build_message(
    event_type: OutboundEventType,
    payload: Optional[CamelModel] = None,
) -> dict[str, Any]:
    """Wrap an outbound payload in the ``{"type", "data"}`` frame envelope."""
    return {
        "type": event_type.value,
        "data": payload.model_dump(by_alias=True) if payload is not None else {},
    }


__all__ = [
    "InboundEventType",
    "OutboundEventType",
    "TransportMessageType",
    "InboundEvent",
    "JoinConversationEvent",
    "JoinDocumentEvent",
    "DocumentChangeEvent",
    "NewMessageEvent",
    "TypingEvent",
    "SetPresenceEvent",
    "parse_inbound_event",
    "UserJoinedPayload",
    "DocumentChangePayload",
    "OutgoingMessage",
    "NewMessagePayload",
    "UserTypingPayload",
    "PresenceChangePayload",
    "build_message",
]
