"""Abstract tool interface for model function calling."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class ToolSpec:
    """Vendor-neutral tool declaration."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_openai_dict(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


@dataclass
class ToolContext:
    """Per-turn state handed to every tool call of that turn."""

    avatar_id: str
    user_id: str
    price_visible: bool = True
    contact_info: Optional[str] = None
    currency: str = "MYR"
    now: Optional[datetime] = None
    # images queued by tools for the reply, in call order
    pending_images: list[dict[str, str]] = field(default_factory=list)

    def add_pending_image(self, url: str, caption: str = "") -> None:
        """Queue an image to be shown to the user with the final reply."""
        self.pending_images.append({"url": url, "caption": caption})

    def take_pending_images(self) -> list[dict[str, str]]:
        """Return and clear all pending images."""
        images = self.pending_images
        self.pending_images = []
        return images


class Tool(ABC):
    """Base class for all model-callable tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name sent to the model."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Description the model uses to decide when to call the tool."""
        ...

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema dict describing accepted parameters."""
        return {"type": "object", "properties": {}, "required": []}

    @abstractmethod
    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        """Run the tool and return the data part of a success envelope."""
        ...

    def to_spec(self) -> ToolSpec:
        return ToolSpec(name=self.name, description=self.description, parameters=self.input_schema)


def int_arg(value: Any, default: int, minimum: int = 1, maximum: int = 50) -> int:
    """Coerce a model-supplied integer argument into range."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, min(maximum, number))
