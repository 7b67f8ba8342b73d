"""Document SQLAlchemy model for co-edited research documents."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String

from ..database import Base


class Document(Base):
    """
    Document belonging to a research project.

    Content lives with the REST service; the realtime layer only needs the
    owning project to authorize document room joins.

    Attributes:
        id: Unique identifier
        project_id: FK to the owning project
        title: Document title
        updated_at: Timestamp of the last saved revision
    """

    __tablename__ = "Documents"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
    )
    project_id = Column(
        String(36),
        ForeignKey("Projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(
        String(255),
        nullable=False,
    )
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, project_id={self.project_id})>"
