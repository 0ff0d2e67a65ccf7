"""Message handler: receives channel messages, asks the engine, sends replies."""

from __future__ import annotations

from avatar_chat.ai.engine import ChatEngine, ChatRequest
from avatar_chat.core.session import SessionManager
from avatar_chat.errors import ConfigurationError, EngineError, UpstreamModelError
from avatar_chat.log import get_logger, preview
from avatar_chat.messenger.base import MessengerAdapter
from avatar_chat.messenger.models import ImageAttachment, IncomingMessage, OutgoingMessage
from avatar_chat.messenger.render import render_for_platform

logger = get_logger(__name__)

CONFIGURATION_REPLY = "This assistant is not set up yet. Please contact the business directly."
UPSTREAM_REPLY = "Sorry, I'm having trouble answering right now. Please try again shortly."


class MessageHandler:
    """Handles the full flow: message -> session -> history -> engine -> channel reply."""

    def __init__(
        self,
        adapter: MessengerAdapter,
        engine: ChatEngine,
        session_manager: SessionManager,
        owner_user_id: str,
        history_messages: int = 30,
        model: str | None = None,
    ):
        self._adapter = adapter
        self._engine = engine
        self._session_manager = session_manager
        self._owner_user_id = owner_user_id
        self._history_messages = history_messages
        self._model = model

    async def handle(self, message: IncomingMessage) -> None:
        """Process an incoming message end-to-end."""
        avatar_id = message.avatar_id
        chat_id = message.chat_id
        text = message.text.strip()

        if not text:
            return

        if text.lower() == "/reset":
            # drain first so the old session's log is complete before switching
            await self._engine.drain()
            self._session_manager.reset_session(avatar_id, chat_id)
            await self._adapter.send_message(
                OutgoingMessage(chat_id=chat_id, text="Session reset. Starting fresh.")
            )
            return

        await self._adapter.send_typing_indicator(chat_id)

        # previous turns are written in the background; wait for them before reading history
        await self._engine.drain()
        history = await self._session_manager.history(avatar_id, chat_id, self._history_messages)
        request = ChatRequest(
            avatar_id=avatar_id,
            user_id=self._owner_user_id,
            message=text,
            history=history,
            model=self._model,
            platform=message.platform,
            contact_handle=chat_id,
            session_id=self._session_manager.get_session_id(avatar_id, chat_id),
        )

        images: list[ImageAttachment] = []
        try:
            reply = await self._engine.respond(request)
            response_text = render_for_platform(reply.text, message.platform)
            images = [
                ImageAttachment(url=img["url"], caption=img.get("caption", ""))
                for img in reply.images
                if img["url"] not in response_text
            ]
        except ConfigurationError:
            response_text = CONFIGURATION_REPLY
        except UpstreamModelError as e:
            logger.warning("upstream_unavailable", status_code=e.status_code, message=preview(text))
            response_text = UPSTREAM_REPLY
        except EngineError:
            response_text = UPSTREAM_REPLY

        chunks = _split_message(response_text, max_length=4000)
        for i, chunk in enumerate(chunks):
            await self._adapter.send_message(
                OutgoingMessage(
                    chat_id=chat_id,
                    text=chunk,
                    images=images if i == len(chunks) - 1 else [],
                )
            )


def _split_message(text: str, max_length: int = 4000) -> list[str]:
    """Split a message into chunks that fit within channel limits."""
    if len(text) <= max_length:
        return [text]

    chunks = []
    while text:
        if len(text) <= max_length:
            chunks.append(text)
            break
        split_pos = text.rfind("\n", 0, max_length)
        if split_pos <= 0:
            split_pos = max_length
        chunks.append(text[:split_pos])
        text = text[split_pos:].lstrip("\n")
    return chunks
