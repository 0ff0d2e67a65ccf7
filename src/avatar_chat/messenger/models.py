"""Unified message models for all channels."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from avatar_chat.core.types import Platform


@dataclass(frozen=True, slots=True)
class ImageAttachment:
    """Image shown alongside a reply, referenced by URL."""

    url: str
    caption: str = ""


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    platform: Platform
    avatar_id: str
    chat_id: str  # contact handle: phone number, widget visitor id, console user
    user_display_name: str
    text: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class OutgoingMessage:
    chat_id: str
    text: str
    images: list[ImageAttachment] = field(default_factory=list)
    reply_to_message_id: Optional[str] = None
