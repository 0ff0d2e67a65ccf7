"""Shared fixtures: in-memory database, record builders and a scripted model client."""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any

import pytest

from avatar_chat.ai.client import AIClient, ModelReply, ToolCall
from avatar_chat.ai.engine import ChatEngine
from avatar_chat.ai.tools.base import ToolSpec
from avatar_chat.ai.tools.registry import ToolRegistry
from avatar_chat.catalog.accessor import CatalogAccessor
from avatar_chat.config import AppConfig
from avatar_chat.knowledge.retriever import KnowledgeRetriever
from avatar_chat.storage.activity_repo import ActivityRepository
from avatar_chat.storage.avatar_repo import AvatarRepository
from avatar_chat.storage.catalog_repo import CatalogRepository
from avatar_chat.storage.conversation_repo import ConversationRepository
from avatar_chat.storage.credential_repo import CredentialRepository
from avatar_chat.storage.database import Database
from avatar_chat.storage.knowledge_repo import KnowledgeRepository
from avatar_chat.storage.memory_repo import MemoryRepository
from avatar_chat.storage.models import Avatar, Product, Promotion

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
AVATAR_ID = "av-1"
OWNER_ID = "owner-1"


def make_avatar(**overrides: Any) -> Avatar:
    data: dict[str, Any] = {"id": AVATAR_ID, "user_id": OWNER_ID, "name": "Mia"}
    data.update(overrides)
    return Avatar(**data)


def make_product(product_id: str = "p1", **overrides: Any) -> Product:
    data: dict[str, Any] = {
        "id": product_id,
        "chatbot_id": AVATAR_ID,
        "sku": f"SKU-{product_id}",
        "name": f"Product {product_id}",
        "price": 100.0,
        "category": "Bouquets",
        "images": [f"https://cdn.example.com/{product_id}.jpg"],
    }
    data.update(overrides)
    return Product(**data)


def make_promotion(promotion_id: str = "promo1", **overrides: Any) -> Promotion:
    data: dict[str, Any] = {
        "id": promotion_id,
        "chatbot_id": AVATAR_ID,
        "title": f"Promo {promotion_id}",
        "discount_type": "percentage",
        "discount_value": 10,
    }
    data.update(overrides)
    return Promotion(**data)


def text_reply(content: str, **kwargs: Any) -> ModelReply:
    return ModelReply(content=content, **kwargs)


def tool_reply(*calls: tuple[str, str, str]) -> ModelReply:
    """A reply that only asks for tools: each call is (id, name, arguments_json)."""
    return ModelReply(content="", tool_calls=[ToolCall(id=i, name=n, arguments_json=a) for i, n, a in calls])


class FakeAIClient(AIClient):
    """Returns scripted replies in order; the last one repeats when the script runs out."""

    service_name = "OpenAI"

    def __init__(
        self,
        replies: list[ModelReply] | None = None,
        embeddings: dict[str, list[float]] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ):
        self.replies = list(replies or [text_reply("Hello!")])
        self.embeddings = embeddings
        self.delay = delay
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    @property
    def supports_embeddings(self) -> bool:
        return self.embeddings is not None

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        tools: list[ToolSpec] | None = None,
    ) -> ModelReply:
        self.calls.append(
            {
                "messages": copy.deepcopy(messages),
                "model": model,
                "max_tokens": max_tokens,
                "tools": [t.name for t in tools or []],
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        return self.replies[index]

    async def embed(self, text: str, model: str) -> list[float]:
        assert self.embeddings is not None
        return self.embeddings.get(text, self.embeddings.get("*", [0.0]))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
async def db():
    database = Database(":memory:")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
async def avatar(db) -> Avatar:
    record = make_avatar()
    await AvatarRepository(db).save_avatar(record)
    return record


@pytest.fixture
def catalog_repo(db) -> CatalogRepository:
    return CatalogRepository(db)


@pytest.fixture
def accessor(catalog_repo) -> CatalogAccessor:
    return CatalogAccessor(catalog_repo, clock=lambda: NOW)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def fake_client() -> FakeAIClient:
    return FakeAIClient()


def build_engine(db: Database, client: AIClient, config: AppConfig | None = None) -> ChatEngine:
    config = config or AppConfig()
    memories = MemoryRepository(db)
    catalog = CatalogAccessor(CatalogRepository(db), clock=lambda: NOW)
    registry = ToolRegistry()
    registry.discover_and_register(catalog, memories)
    return ChatEngine(
        config=config,
        avatars=AvatarRepository(db),
        catalog=catalog,
        retriever=KnowledgeRetriever(KnowledgeRepository(db), memories, config.engine.embedding_model),
        credentials=CredentialRepository(db),
        conversations=ConversationRepository(db),
        activity=ActivityRepository(db),
        tool_registry=registry,
        client_factory=lambda _config, _key: client,
        clock=lambda: NOW,
    )


@pytest.fixture
async def engine(db, avatar, fake_client) -> ChatEngine:
    await CredentialRepository(db).assign_operator_key(OWNER_ID, "OpenAI", "sk-test")
    chat_engine = build_engine(db, fake_client)
    yield chat_engine
    await chat_engine.drain()
