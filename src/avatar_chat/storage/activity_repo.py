"""Write-only activity records: model usage and human hand-offs."""

from __future__ import annotations

from typing import Optional

from avatar_chat.storage.database import Database


class ActivityRepository:
    def __init__(self, db: Database):
        self._db = db

    async def record_model_usage(
        self, user_id: str, avatar_id: str, model: str, input_tokens: int, output_tokens: int
    ) -> None:
        await self._db.conn.execute(
            """INSERT INTO model_usage (user_id, avatar_id, model, input_tokens, output_tokens)
               VALUES (?, ?, ?, ?, ?)""",
            (user_id, avatar_id, model, input_tokens, output_tokens),
        )
        await self._db.conn.commit()

    async def record_handoff(
        self,
        avatar_id: str,
        user_id: str,
        platform: str,
        contact: Optional[str],
        reason: str,
        message: str,
    ) -> None:
        await self._db.conn.execute(
            """INSERT INTO human_handoffs (avatar_id, user_id, platform, contact, reason, message)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (avatar_id, user_id, platform, contact, reason, message),
        )
        await self._db.conn.commit()

    async def count_handoffs(self, avatar_id: str) -> int:
        cursor = await self._db.conn.execute(
            "SELECT COUNT(*) AS n FROM human_handoffs WHERE avatar_id = ?", (avatar_id,)
        )
        row = await cursor.fetchone()
        return row["n"]

    async def list_model_usage(self, avatar_id: str) -> list[dict]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM model_usage WHERE avatar_id = ? ORDER BY id ASC", (avatar_id,)
        )
        return [dict(row) for row in await cursor.fetchall()]
