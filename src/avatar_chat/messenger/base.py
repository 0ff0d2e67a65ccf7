"""Abstract channel adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from avatar_chat.core.types import Platform
from avatar_chat.messenger.models import IncomingMessage, OutgoingMessage


class MessengerAdapter(ABC):
    """Base class for all channel adapters.

    An adapter only translates its wire format to and from IncomingMessage and
    OutgoingMessage; replies are produced by the engine.
    """

    def __init__(self, avatar_id: str, config: dict):
        self.avatar_id = avatar_id
        self.config = config
        self._message_callback: Callable[[IncomingMessage], Awaitable[None]] | None = None

    @abstractmethod
    async def start(self) -> None:
        """Connect to the channel and begin receiving messages."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Gracefully disconnect."""
        ...

    @abstractmethod
    async def send_message(self, message: OutgoingMessage) -> None:
        """Send a reply to one contact."""
        ...

    async def send_typing_indicator(self, chat_id: str) -> None:
        """Show a typing indicator where the channel has one."""
        return None

    def on_message(self, callback: Callable[[IncomingMessage], Awaitable[None]]) -> None:
        """Register the callback invoked for every incoming message."""
        self._message_callback = callback

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """Channel identifier."""
        ...
