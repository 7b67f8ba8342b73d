"""SQLAlchemy ORM models package."""

from .conversation import Conversation, ConversationParticipant
from .document import Document
from .project import Project, ProjectMember
from .user import User

__all__ = [
    "Conversation",
    "ConversationParticipant",
    "Document",
    "Project",
    "ProjectMember",
    "User",
]
