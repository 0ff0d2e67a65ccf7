"""Tests for knowledge retrieval."""

from __future__ import annotations

import pytest

from avatar_chat.errors import UpstreamModelError
from avatar_chat.knowledge.retriever import KnowledgeRetriever, cosine_similarity
from avatar_chat.storage.knowledge_repo import KnowledgeRepository
from avatar_chat.storage.memory_repo import MemoryRepository
from conftest import AVATAR_ID, FakeAIClient


class FailingEmbedClient(FakeAIClient):
    async def embed(self, text: str, model: str) -> list[float]:
        raise UpstreamModelError("Embedding quota exceeded", status_code=429)


@pytest.fixture
async def retriever(db, avatar) -> KnowledgeRetriever:
    knowledge = KnowledgeRepository(db)
    await knowledge.save_chunk("exact", AVATAR_ID, "Delivery areas", [1.0, 0.0, 0.0])
    await knowledge.save_chunk("close", AVATAR_ID, "Delivery times", [0.8, 0.6, 0.0])
    await knowledge.save_chunk("edge", AVATAR_ID, "Delivery fees", [0.75, 0.0, 0.66])
    await knowledge.save_chunk("far", AVATAR_ID, "Our founder", [0.0, 0.0, 1.0])
    return KnowledgeRetriever(knowledge, MemoryRepository(db), "text-embedding-3-small")


def test_cosine_similarity():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


async def test_ranked_and_thresholded(retriever):
    client = FakeAIClient(embeddings={"*": [1.0, 0.0, 0.0]})

    chunks = await retriever.search_knowledge(client, AVATAR_ID, "where do you deliver")

    assert [c.id for c in chunks] == ["exact", "close", "edge"]
    assert chunks[0].similarity == pytest.approx(1.0)
    assert all(c.similarity >= 0.7 for c in chunks)


async def test_top_k_limits_results(retriever):
    client = FakeAIClient(embeddings={"*": [1.0, 0.0, 0.0]})
    chunks = await retriever.search_knowledge(client, AVATAR_ID, "deliver", top_k=1)
    assert [c.id for c in chunks] == ["exact"]


async def test_backend_without_embeddings_yields_nothing(retriever):
    assert await retriever.search_knowledge(FakeAIClient(), AVATAR_ID, "deliver") == []


async def test_embedding_failure_yields_nothing(retriever):
    client = FailingEmbedClient(embeddings={})
    assert await retriever.search_knowledge(client, AVATAR_ID, "deliver") == []


async def test_blank_query_yields_nothing(retriever):
    client = FakeAIClient(embeddings={"*": [1.0, 0.0, 0.0]})
    assert await retriever.search_knowledge(client, AVATAR_ID, "   ") == []
