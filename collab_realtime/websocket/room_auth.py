"""Room authorization lookups against the relational store.

Both checks are live point lookups keyed by (entity id, user id); results
are never cached, so a join always reflects current membership. Lookup
errors propagate to the caller, which decides how to fail.
"""

import logging
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import async_session_maker
from ..models.conversation import ConversationParticipant
from ..models.document import Document
from ..models.project import ProjectMember

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class RoomAccessChecker:
    """Participant and project-membership lookups used by room joins."""

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self._session_factory = session_factory or async_session_maker

    def _session(self) -> AsyncSession:
        return self._session_factory()

    async def is_conversation_participant(self, conversation_id: str, user_id: str) -> bool:
        """Check if the user is a recorded participant of the conversation."""
        async with self._session() as db:
            result = await db.execute(
                select(ConversationParticipant.id).where(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.user_id == user_id,
                )
            )
            return result.scalar_one_or_none() is not None

    async def is_document_project_member(self, document_id: str, user_id: str) -> bool:
        """Check if the user belongs to the project that owns the document."""
        async with self._session() as db:
            result = await db.execute(
                select(Document.project_id).where(Document.id == document_id)
            )
            project_id = result.scalar_one_or_none()
            if project_id is None:
                logger.debug(f"[Room Auth] document not found: {document_id}")
                return False

            result = await db.execute(
                select(ProjectMember.id).where(
                    ProjectMember.project_id == project_id,
                    ProjectMember.user_id == user_id,
                )
            )
            return result.scalar_one_or_none() is not None


# Global instance bound to the application database
room_access_checker = RoomAccessChecker()
