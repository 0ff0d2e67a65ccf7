"""Avatar memories and their photos."""

from __future__ import annotations

import json
from typing import Optional

from avatar_chat.storage.database import Database
from avatar_chat.storage.models import Memory, MemoryImage


class MemoryRepository:
    def __init__(self, db: Database):
        self._db = db

    async def get_recent_memories(self, avatar_id: str, user_id: str, limit: int = 10) -> list[Memory]:
        """Non-private memories, newest memory date first, each with its photo count."""
        cursor = await self._db.conn.execute(
            """SELECT m.*, COUNT(i.id) AS image_count
               FROM avatar_memories m
               LEFT JOIN memory_images i ON i.memory_id = m.id
               WHERE m.avatar_id = ? AND m.user_id = ? AND m.is_private = 0
               GROUP BY m.id
               ORDER BY COALESCE(m.memory_date, m.created_at) DESC, m.created_at DESC
               LIMIT ?""",
            (avatar_id, user_id, limit),
        )
        return [Memory(**dict(row)) for row in await cursor.fetchall()]

    async def get_memory_images(self, memory_id: str) -> list[MemoryImage]:
        """Photos of one memory, primary photo first."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM memory_images
               WHERE memory_id = ?
               ORDER BY is_primary DESC, created_at ASC, rowid ASC""",
            (memory_id,),
        )
        return [MemoryImage(**dict(row)) for row in await cursor.fetchall()]

    async def get_memory(self, memory_id: str) -> Optional[Memory]:
        cursor = await self._db.conn.execute(
            "SELECT *, 0 AS image_count FROM avatar_memories WHERE id = ?", (memory_id,)
        )
        row = await cursor.fetchone()
        return Memory(**dict(row)) if row else None

    async def save_memory(self, memory: Memory) -> None:
        await self._db.conn.execute(
            """INSERT OR REPLACE INTO avatar_memories
               (id, avatar_id, user_id, title, memory_date, memory_summary, details, is_private)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                memory.id,
                memory.avatar_id,
                memory.user_id,
                memory.title,
                memory.memory_date.isoformat() if memory.memory_date else None,
                memory.memory_summary,
                json.dumps(memory.details),
                int(memory.is_private),
            ),
        )
        await self._db.conn.commit()

    async def save_memory_image(self, image: MemoryImage) -> None:
        await self._db.conn.execute(
            """INSERT OR REPLACE INTO memory_images (id, memory_id, image_url, caption, is_primary)
               VALUES (?, ?, ?, ?, ?)""",
            (image.id, image.memory_id, image.image_url, image.caption, int(image.is_primary)),
        )
        await self._db.conn.commit()
