"""Conversation log of user and assistant turns."""

from __future__ import annotations

from datetime import datetime, timezone

from avatar_chat.log import get_logger
from avatar_chat.storage.database import Database
from avatar_chat.storage.models import ConversationRecord

logger = get_logger(__name__)


class ConversationRepository:
    """Append-only turn log, read back per (avatar, session)."""

    def __init__(self, db: Database):
        self._db = db

    async def save_turn(self, record: ConversationRecord) -> int:
        """Save a conversation turn and return its ID."""
        cursor = await self._db.conn.execute(
            """INSERT INTO conversation_turns
               (avatar_id, session_id, contact, platform, role, content, model,
                token_input, token_output)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.avatar_id,
                record.session_id,
                record.contact,
                record.platform,
                record.role,
                record.content,
                record.model,
                record.token_input,
                record.token_output,
            ),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def get_session_history(
        self, avatar_id: str, session_id: str, limit: int = 30
    ) -> list[ConversationRecord]:
        """The most recent *limit* turns of a session, oldest first."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM (
                   SELECT * FROM conversation_turns
                   WHERE avatar_id = ? AND session_id = ?
                   ORDER BY id DESC
                   LIMIT ?
               ) ORDER BY id ASC""",
            (avatar_id, session_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    async def delete_session(self, avatar_id: str, session_id: str) -> int:
        """Delete all turns for a session. Returns number of deleted rows."""
        cursor = await self._db.conn.execute(
            "DELETE FROM conversation_turns WHERE avatar_id = ? AND session_id = ?",
            (avatar_id, session_id),
        )
        await self._db.conn.commit()
        logger.info("session_deleted", avatar_id=avatar_id, session_id=session_id)
        return cursor.rowcount

    @staticmethod
    def _row_to_record(row) -> ConversationRecord:
        timestamp = datetime.fromisoformat(row["created_at"]).replace(tzinfo=timezone.utc)
        return ConversationRecord(
            id=row["id"],
            avatar_id=row["avatar_id"],
            session_id=row["session_id"],
            contact=row["contact"],
            platform=row["platform"],
            role=row["role"],
            content=row["content"],
            model=row["model"],
            token_input=row["token_input"],
            token_output=row["token_output"],
            timestamp=timestamp,
        )
