"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from avatar_chat.ai.engine import ChatEngine
from avatar_chat.ai.handler import MessageHandler
from avatar_chat.ai.tools.registry import ToolRegistry
from avatar_chat.catalog.accessor import CatalogAccessor
from avatar_chat.config import AppConfig
from avatar_chat.core.session import SessionManager
from avatar_chat.knowledge.retriever import KnowledgeRetriever
from avatar_chat.log import get_logger
from avatar_chat.messenger.base import MessengerAdapter
from avatar_chat.storage.activity_repo import ActivityRepository
from avatar_chat.storage.avatar_repo import AvatarRepository
from avatar_chat.storage.catalog_repo import CatalogRepository
from avatar_chat.storage.conversation_repo import ConversationRepository
from avatar_chat.storage.credential_repo import CredentialRepository
from avatar_chat.storage.database import Database
from avatar_chat.storage.knowledge_repo import KnowledgeRepository
from avatar_chat.storage.memory_repo import MemoryRepository

logger = get_logger(__name__)


class AvatarChatApp:
    """Top-level application orchestrator."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.avatar_repo = AvatarRepository(self.db)
        self.memory_repo = MemoryRepository(self.db)
        self.conversation_repo = ConversationRepository(self.db)
        self.catalog = CatalogAccessor(CatalogRepository(self.db))
        self.retriever = KnowledgeRetriever(
            KnowledgeRepository(self.db), self.memory_repo, config.engine.embedding_model
        )
        self.session_manager = SessionManager(self.conversation_repo)
        self.tool_registry = ToolRegistry()
        self.engine = ChatEngine(
            config=config,
            avatars=self.avatar_repo,
            catalog=self.catalog,
            retriever=self.retriever,
            credentials=CredentialRepository(self.db),
            conversations=self.conversation_repo,
            activity=ActivityRepository(self.db),
            tool_registry=self.tool_registry,
        )
        self._adapters: list[MessengerAdapter] = []

    async def start(self) -> None:
        """Initialize storage and tools."""
        await self.db.initialize()
        self.tool_registry.discover_and_register(self.catalog, self.memory_repo)
        logger.info(
            "avatar_chat_started",
            backend=self.config.engine.backend,
            tools=len(self.tool_registry.all_tools()),
        )

    def attach(self, adapter: MessengerAdapter, owner_user_id: str, model: str | None = None) -> MessageHandler:
        """Route an adapter's messages through the engine."""
        handler = MessageHandler(
            adapter=adapter,
            engine=self.engine,
            session_manager=self.session_manager,
            owner_user_id=owner_user_id,
            history_messages=self.config.engine.history_messages,
            model=model,
        )
        adapter.on_message(handler.handle)
        self._adapters.append(adapter)
        return handler

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        for adapter in self._adapters:
            try:
                await adapter.stop()
            except Exception as e:
                logger.error("adapter_stop_error", avatar_id=adapter.avatar_id, error=str(e))
        await self.engine.drain()
        await self.db.close()
        logger.info("avatar_chat_stopped")
