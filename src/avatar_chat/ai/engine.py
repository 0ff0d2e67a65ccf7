"""Response engine: one inbound message in, one reply out.

Every channel (web widget, WhatsApp webhook, API, console) calls
:meth:`ChatEngine.respond`; none of them talk to the model directly.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Coroutine, Optional

import aiosqlite
import structlog
from pydantic import ValidationError

from avatar_chat.ai.client import AIClient, create_ai_client, service_for_backend
from avatar_chat.ai.models import max_tokens_for, select_model
from avatar_chat.ai.policy import escalation_reply, is_price_question
from avatar_chat.ai.postprocess import clean_image_references, extract_images
from avatar_chat.ai.prompt import PlatformContext, compose_system_prompt
from avatar_chat.ai.tool_runner import CANCELLED_REPLY, ToolLoopResult, run_tool_loop
from avatar_chat.ai.tools.base import ToolContext
from avatar_chat.ai.tools.registry import ToolRegistry
from avatar_chat.catalog.accessor import CatalogAccessor
from avatar_chat.config import AppConfig
from avatar_chat.core.types import Outcome, Platform, TurnState
from avatar_chat.errors import ConfigurationError, EngineError, StorageError
from avatar_chat.knowledge.retriever import KnowledgeRetriever
from avatar_chat.log import get_logger, preview
from avatar_chat.storage.activity_repo import ActivityRepository
from avatar_chat.storage.avatar_repo import AvatarRepository
from avatar_chat.storage.conversation_repo import ConversationRepository
from avatar_chat.storage.credential_repo import CredentialRepository
from avatar_chat.storage.models import Avatar, ConversationRecord

logger = get_logger(__name__)

ClientFactory = Callable[[AppConfig, str], AIClient]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatRequest:
    avatar_id: str
    user_id: str
    message: str
    history: list[dict[str, str]] = field(default_factory=list)
    model: Optional[str] = None
    platform: Platform = Platform.WEB
    contact_handle: Optional[str] = None
    session_id: Optional[str] = None

    @property
    def conversation_id(self) -> str:
        return self.session_id or f"{self.platform}:{self.contact_handle or self.user_id}"


@dataclass
class ReplyMetadata:
    model_used: str
    platform: Platform
    outcome: Outcome = Outcome.ANSWERED
    knowledge_chunks_used: int = 0
    memories_accessed: int = 0
    tool_calls_executed: int = 0
    escalated_to_human: bool = False
    prompt_version_id: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ChatReply:
    text: str
    metadata: ReplyMetadata
    images: list[dict[str, str]] = field(default_factory=list)


class ChatEngine:
    """Runs the turn state machine and owns the turn's fire-and-forget side effects."""

    def __init__(
        self,
        config: AppConfig,
        avatars: AvatarRepository,
        catalog: CatalogAccessor,
        retriever: KnowledgeRetriever,
        credentials: CredentialRepository,
        conversations: ConversationRepository,
        activity: ActivityRepository,
        tool_registry: ToolRegistry,
        client_factory: ClientFactory = create_ai_client,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._config = config
        self._avatars = avatars
        self._catalog = catalog
        self._retriever = retriever
        self._credentials = credentials
        self._conversations = conversations
        self._activity = activity
        self._tool_registry = tool_registry
        self._client_factory = client_factory
        self._clock = clock
        self._background: set[asyncio.Task[Any]] = set()

    async def respond(
        self,
        request: ChatRequest,
        *,
        deadline: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ChatReply:
        """Answer one message. Raises ConfigurationError or UpstreamModelError."""
        with structlog.contextvars.bound_contextvars(
            avatar_id=request.avatar_id, platform=str(request.platform)
        ):
            try:
                return await self._respond(request, deadline, cancel_event)
            except EngineError as exc:
                logger.error(
                    "engine_error",
                    state=TurnState.ERROR,
                    message=preview(request.message),
                    error_kind=exc.kind,
                    error=exc.message,
                )
                raise

    async def _respond(
        self,
        request: ChatRequest,
        deadline: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> ChatReply:
        engine = self._config.engine
        now = self._clock()
        logger.info("engine_state", state=TurnState.INIT, message=preview(request.message))

        try:
            avatar, version, memories, overview = await asyncio.gather(
                self._avatars.get_avatar(request.avatar_id, request.user_id),
                self._avatars.get_active_prompt_version(request.avatar_id),
                self._retriever.get_recent_memories(request.avatar_id, request.user_id, engine.memory_limit),
                self._catalog.catalog_overview(request.avatar_id, now=now),
            )
        except (aiosqlite.Error, ValidationError) as exc:
            raise StorageError(f"Could not load avatar context: {exc}") from exc
        if avatar is None:
            raise ConfigurationError(f"Avatar not found: {request.avatar_id}")

        model, fine_tuned = select_model(avatar, request.model, engine.default_model)
        metadata = ReplyMetadata(
            model_used=model,
            platform=request.platform,
            memories_accessed=len(memories),
            prompt_version_id=version.id if version else None,
        )

        logger.info("engine_state", state=TurnState.POLICY_CHECK, price_visible=avatar.price_visible)
        if not avatar.price_visible and is_price_question(request.message):
            return self._short_circuit(request, avatar, metadata)

        api_key = await self._credentials.resolve_model_credential(
            request.user_id, service_for_backend(engine.backend)
        )
        client = self._client_factory(self._config, api_key)
        ctx = ToolContext(
            avatar_id=avatar.id,
            user_id=request.user_id,
            price_visible=avatar.price_visible,
            contact_info=avatar.contact_info,
            currency=engine.default_currency,
            now=now,
        )

        async def _answer() -> ToolLoopResult:
            chunks = await self._retriever.search_knowledge(
                client,
                avatar.id,
                request.message,
                top_k=engine.knowledge_top_k,
                min_similarity=engine.knowledge_min_similarity,
            )
            metadata.knowledge_chunks_used = len(chunks)
            system_prompt = compose_system_prompt(
                avatar,
                version,
                chunks,
                memories,
                PlatformContext(request.platform, request.contact_handle),
                user_message=request.message,
                catalog_overview=overview,
                knowledge_char_budget=engine.knowledge_char_budget,
            )
            messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
            messages += self._history_messages(request.history)
            messages.append({"role": "user", "content": request.message})
            return await run_tool_loop(
                client,
                self._tool_registry,
                messages,
                model=model,
                max_tokens=max_tokens_for(model),
                temperature=engine.temperature,
                ctx=ctx,
                max_rounds=engine.max_tool_rounds,
                cancel_event=cancel_event,
            )

        try:
            limit = deadline if deadline is not None else engine.response_deadline_seconds
            result = await self._run_bounded(_answer(), limit, cancel_event)
        finally:
            await client.aclose()

        if result is None:
            logger.warning("engine_deadline_expired", deadline=limit)
            result = ToolLoopResult(text=CANCELLED_REPLY, outcome=Outcome.TIMED_OUT, model=model)

        text = clean_image_references(result.text)
        images = extract_images(text, ctx.take_pending_images())
        metadata.model_used = result.model or model
        metadata.outcome = result.outcome
        metadata.tool_calls_executed = len(result.tool_calls_executed)
        metadata.input_tokens = result.input_tokens
        metadata.output_tokens = result.output_tokens

        self._log_turn(request, text, metadata)
        if fine_tuned and (result.input_tokens or result.output_tokens):
            self._spawn(
                self._activity.record_model_usage(
                    request.user_id, avatar.id, metadata.model_used,
                    result.input_tokens, result.output_tokens,
                ),
                "record_model_usage",
            )
        if version is not None:
            self._spawn(self._avatars.record_prompt_version_usage(version.id), "record_prompt_version_usage")

        logger.info(
            "engine_state",
            state=TurnState.DONE,
            outcome=metadata.outcome,
            rounds=result.rounds,
            tool_calls=metadata.tool_calls_executed,
            images=len(images),
        )
        return ChatReply(text=text, images=images, metadata=metadata)

    def _short_circuit(self, request: ChatRequest, avatar: Avatar, metadata: ReplyMetadata) -> ChatReply:
        text = escalation_reply(avatar)
        metadata.outcome = Outcome.ESCALATED
        metadata.escalated_to_human = True
        logger.info("engine_short_circuit", reason="price_question", message=preview(request.message))
        self._spawn(
            self._activity.record_handoff(
                avatar.id,
                request.user_id,
                str(request.platform),
                request.contact_handle,
                "price_inquiry",
                request.message,
            ),
            "record_handoff",
        )
        self._log_turn(request, text, metadata)
        logger.info("engine_state", state=TurnState.DONE, outcome=metadata.outcome)
        return ChatReply(text=text, images=[], metadata=metadata)

    def _history_messages(self, history: list[dict[str, str]]) -> list[dict[str, str]]:
        window = self._config.engine.history_messages
        turns = [
            {"role": h["role"], "content": h["content"]}
            for h in history
            if h.get("role") in ("user", "assistant") and h.get("content")
        ]
        return turns[-window:] if window > 0 else []

    @staticmethod
    async def _run_bounded(
        coro: Coroutine[Any, Any, ToolLoopResult],
        deadline: float,
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[ToolLoopResult]:
        """Await *coro* unless the deadline passes or *cancel_event* fires first (then None)."""
        work = asyncio.ensure_future(coro)
        waiters: set[asyncio.Future[Any]] = {work}
        if cancel_event is not None:
            waiters.add(asyncio.ensure_future(cancel_event.wait()))
        try:
            done, _ = await asyncio.wait(waiters, timeout=deadline, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [w for w in waiters if not w.done()]
            for waiter in pending:
                waiter.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        if work in done:
            return work.result()
        return None

    def _log_turn(self, request: ChatRequest, reply_text: str, metadata: ReplyMetadata) -> None:
        session_id = request.conversation_id
        contact = request.contact_handle or request.user_id

        async def _save() -> None:
            await self._conversations.save_turn(
                ConversationRecord(
                    avatar_id=request.avatar_id,
                    session_id=session_id,
                    contact=contact,
                    platform=str(request.platform),
                    role="user",
                    content=request.message,
                )
            )
            await self._conversations.save_turn(
                ConversationRecord(
                    avatar_id=request.avatar_id,
                    session_id=session_id,
                    contact=contact,
                    platform=str(request.platform),
                    role="assistant",
                    content=reply_text,
                    model=metadata.model_used,
                    token_input=metadata.input_tokens,
                    token_output=metadata.output_tokens,
                )
            )

        self._spawn(_save(), "log_conversation")

    def _spawn(self, coro: Awaitable[Any], name: str) -> None:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("background_task_failed", task=task.get_name(), error=str(exc))

    async def drain(self) -> None:
        """Wait for outstanding side effects. Used at shutdown and in tests."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
