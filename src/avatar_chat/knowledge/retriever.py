"""Knowledge-base retrieval and memory lookup for prompt assembly."""

from __future__ import annotations

import math
from typing import Sequence

from avatar_chat.ai.client import AIClient
from avatar_chat.errors import UpstreamModelError
from avatar_chat.log import get_logger
from avatar_chat.storage.knowledge_repo import KnowledgeRepository
from avatar_chat.storage.memory_repo import MemoryRepository
from avatar_chat.storage.models import KnowledgeChunk, Memory

logger = get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class KnowledgeRetriever:
    """Ranks stored knowledge chunks against a message and reads recent memories."""

    def __init__(self, knowledge: KnowledgeRepository, memories: MemoryRepository, embedding_model: str):
        self._knowledge = knowledge
        self._memories = memories
        self._embedding_model = embedding_model

    async def search_knowledge(
        self,
        ai_client: AIClient,
        avatar_id: str,
        query_text: str,
        top_k: int = 5,
        min_similarity: float = 0.7,
    ) -> list[KnowledgeChunk]:
        """Top-*top_k* chunks with similarity at or above *min_similarity*, best first.

        Retrieval is best effort: a backend without embeddings, or a failed
        embedding call, yields no chunks rather than failing the turn.
        """
        if not query_text.strip() or top_k <= 0:
            return []
        stored = await self._knowledge.list_chunks(avatar_id)
        if not stored:
            return []
        if not ai_client.supports_embeddings:
            logger.info("knowledge_retrieval_skipped", avatar_id=avatar_id, reason="no_embeddings")
            return []

        try:
            query_vector = await ai_client.embed(query_text, self._embedding_model)
        except UpstreamModelError as exc:
            logger.warning(
                "knowledge_retrieval_failed",
                avatar_id=avatar_id,
                error_kind=exc.kind,
                status_code=exc.status_code,
            )
            return []

        scored: list[KnowledgeChunk] = []
        for chunk, embedding in stored:
            similarity = cosine_similarity(query_vector, embedding)
            if similarity >= min_similarity:
                scored.append(chunk.model_copy(update={"similarity": similarity}))
        # stable sort keeps insertion order between equal scores
        scored.sort(key=lambda c: c.similarity, reverse=True)
        result = scored[:top_k]
        logger.debug(
            "knowledge_retrieved",
            avatar_id=avatar_id,
            candidates=len(stored),
            matched=len(scored),
            used=len(result),
        )
        return result

    async def get_recent_memories(self, avatar_id: str, user_id: str, limit: int = 10) -> list[Memory]:
        return await self._memories.get_recent_memories(avatar_id, user_id, limit)
