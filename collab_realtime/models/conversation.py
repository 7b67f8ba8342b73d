"""Conversation and ConversationParticipant SQLAlchemy models."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from ..database import Base


class Conversation(Base):
    """
    Direct or group conversation.

    Attributes:
        id: Unique identifier
        type: DIRECT or GROUP
        name: Optional group name
        updated_at: Timestamp of the latest message
    """

    __tablename__ = "Conversations"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
    )
    type = Column(
        String(20),
        nullable=False,
        default="DIRECT",
    )
    name = Column(
        String(255),
        nullable=True,
    )
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )


class ConversationParticipant(Base):
    """Participation of a user in a conversation."""

    __tablename__ = "ConversationParticipants"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participant"),
    )

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
    )
    conversation_id = Column(
        String(36),
        ForeignKey("Conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        String(36),
        ForeignKey("Users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    last_read = Column(
        DateTime,
        nullable=True,
    )
