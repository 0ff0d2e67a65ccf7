"""Interactive console channel, used by ``avatar-chat chat``."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone
from typing import TextIO

from avatar_chat.core.types import Platform
from avatar_chat.log import get_logger
from avatar_chat.messenger.base import MessengerAdapter
from avatar_chat.messenger.models import IncomingMessage, OutgoingMessage

logger = get_logger(__name__)

EXIT_COMMANDS = frozenset({"/quit", "/exit"})


class ConsoleAdapter(MessengerAdapter):
    """Reads one message per line from stdin and prints replies to stdout."""

    def __init__(
        self,
        avatar_id: str,
        config: dict,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ):
        super().__init__(avatar_id, config)
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._contact = str(config.get("contact", "console"))
        self._running = False

    @property
    def platform(self) -> Platform:
        return Platform.CONSOLE

    async def start(self) -> None:
        """Read until EOF or an exit command, dispatching each line."""
        self._running = True
        logger.info("console_started", avatar_id=self.avatar_id, contact=self._contact)
        while self._running:
            self._write("you> ", end="")
            line = await asyncio.to_thread(self._stdin.readline)
            if not line:
                break
            text = line.strip()
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                break
            if self._message_callback is not None:
                await self._message_callback(
                    IncomingMessage(
                        platform=Platform.CONSOLE,
                        avatar_id=self.avatar_id,
                        chat_id=self._contact,
                        user_display_name=self._contact,
                        text=text,
                        timestamp=datetime.now(timezone.utc),
                    )
                )
        self._running = False

    async def stop(self) -> None:
        self._running = False
        logger.info("console_stopped", avatar_id=self.avatar_id)

    async def send_message(self, message: OutgoingMessage) -> None:
        self._write(f"bot> {message.text}")
        for image in message.images:
            label = f" ({image.caption})" if image.caption else ""
            self._write(f"     [image] {image.url}{label}")

    def _write(self, text: str, end: str = "\n") -> None:
        self._stdout.write(text + end)
        self._stdout.flush()
