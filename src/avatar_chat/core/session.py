"""Session manager mapping (avatar_id, contact) to session IDs."""

from __future__ import annotations

import uuid

from avatar_chat.log import get_logger
from avatar_chat.storage.conversation_repo import ConversationRepository

logger = get_logger(__name__)


class SessionManager:
    """Manages sessions per (avatar_id, contact) pair."""

    def __init__(self, conversation_repo: ConversationRepository):
        self._repo = conversation_repo
        self._active_sessions: dict[tuple[str, str], str] = {}

    def get_session_id(self, avatar_id: str, contact: str) -> str:
        """Get or create a session ID for an (avatar_id, contact) pair."""
        key = (avatar_id, contact)
        if key not in self._active_sessions:
            session_id = uuid.uuid4().hex[:12]
            self._active_sessions[key] = session_id
            logger.info("session_created", avatar_id=avatar_id, contact=contact, session_id=session_id)
        return self._active_sessions[key]

    def reset_session(self, avatar_id: str, contact: str) -> str:
        """Force create a new session, returning the new session ID."""
        key = (avatar_id, contact)
        session_id = uuid.uuid4().hex[:12]
        self._active_sessions[key] = session_id
        logger.info("session_reset", avatar_id=avatar_id, contact=contact, session_id=session_id)
        return session_id

    async def history(self, avatar_id: str, contact: str, limit: int = 30) -> list[dict[str, str]]:
        """The session's logged turns as chat messages, oldest first."""
        session_id = self.get_session_id(avatar_id, contact)
        records = await self._repo.get_session_history(avatar_id, session_id, limit)
        return [{"role": r.role, "content": r.content} for r in records]
