"""Project and ProjectMember SQLAlchemy models."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from ..database import Base


class Project(Base):
    """
    Research project that owns collaborative documents.

    Attributes:
        id: Unique identifier
        title: Project title
        owner_id: FK to the creating user
        created_at: Timestamp when project was created
    """

    __tablename__ = "Projects"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        nullable=False,
    )
    title = Column(
        String(255),
        nullable=False,
    )
    owner_id = Column(
        String(36),
        ForeignKey("Users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_at = Column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )


class ProjectMember(Base):
    """
    Membership of a user in a project.

    Document rooms are open to exactly the members recorded here.
    """

    __tablename__ = "ProjectMembers"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member"),
    )

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
    user_id = Column(
        String(36),
        ForeignKey("Users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(
        String(50),
        nullable=False,
        default="MEMBER",
    )
