"""Knowledge-base chunks with their stored embeddings."""

from __future__ import annotations

import json
from typing import Optional

from avatar_chat.storage.database import Database
from avatar_chat.storage.models import KnowledgeChunk


class KnowledgeRepository:
    def __init__(self, db: Database):
        self._db = db

    async def list_chunks(self, avatar_id: str) -> list[tuple[KnowledgeChunk, list[float]]]:
        """All chunks of an avatar paired with their embedding vectors."""
        cursor = await self._db.conn.execute(
            """SELECT id, avatar_id, chunk_text, embedding_json, section_title, page_number
               FROM knowledge_chunks
               WHERE avatar_id = ?
               ORDER BY rowid ASC""",
            (avatar_id,),
        )
        pairs: list[tuple[KnowledgeChunk, list[float]]] = []
        for row in await cursor.fetchall():
            data = dict(row)
            embedding = json.loads(data.pop("embedding_json"))
            pairs.append((KnowledgeChunk(**data), embedding))
        return pairs

    async def save_chunk(
        self,
        chunk_id: str,
        avatar_id: str,
        chunk_text: str,
        embedding: list[float],
        section_title: Optional[str] = None,
        page_number: Optional[int] = None,
    ) -> None:
        await self._db.conn.execute(
            """INSERT OR REPLACE INTO knowledge_chunks
               (id, avatar_id, chunk_text, embedding_json, section_title, page_number)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (chunk_id, avatar_id, chunk_text, json.dumps(embedding), section_title, page_number),
        )
        await self._db.conn.commit()
