"""User SQLAlchemy model (read-only mapping of the REST service table)."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String

from ..database import Base


class User(Base):
    """
    User model representing platform accounts.

    Only the columns the realtime layer may need are mapped; the table
    itself is owned and migrated by the REST service.

    Attributes:
        id: Unique identifier (string id issued by the REST service)
        email: User's email address (unique)
        name: User's display name
        created_at: Timestamp when user was created
    """

    __tablename__ = "Users"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
    )
    email = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    name = Column(
        String(100),
        nullable=True,
    )
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
