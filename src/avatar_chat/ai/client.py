"""AI client abstraction with OpenAI chat-completions and Anthropic messages backends.

The engine speaks one message format, OpenAI's chat format, and every backend
returns a normalised :class:`ModelReply`. The Anthropic backend translates on the
way in and out.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import anthropic
import openai

from avatar_chat.ai.tools.base import ToolSpec
from avatar_chat.config import AnthropicConfig, AppConfig, OpenAIConfig
from avatar_chat.errors import ConfigurationError, UpstreamModelError
from avatar_chat.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments_json: str = "{}"


@dataclass
class ModelReply:
    """Unified response from any AI backend."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""

    @property
    def assistant_message(self) -> dict[str, Any]:
        """The reply as an OpenAI-format assistant message, for appending to history."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content or None}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments_json},
                }
                for call in self.tool_calls
            ]
        return message


class AIClient(ABC):
    """Abstract base class for AI backends."""

    service_name: str = ""

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        tools: list[ToolSpec] | None = None,
    ) -> ModelReply:
        """Send an OpenAI-format conversation and return the model's next message."""
        ...

    @property
    def supports_embeddings(self) -> bool:
        return False

    async def embed(self, text: str, model: str) -> list[float]:
        raise ConfigurationError(f"{self.service_name} backend does not provide embeddings")

    async def aclose(self) -> None:
        return None


class OpenAIClient(AIClient):
    """OpenAI chat-completions backend using the official SDK."""

    service_name = "OpenAI"

    def __init__(self, api_key: str, config: OpenAIConfig):
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )

    @property
    def supports_embeddings(self) -> bool:
        return True

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        tools: list[ToolSpec] | None = None,
    ) -> ModelReply:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if tools:
            kwargs["tools"] = [t.to_openai_dict() for t in tools]
            kwargs["tool_choice"] = "auto"

        logger.debug("api_request", backend="openai", model=model, message_count=len(messages))
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            raise UpstreamModelError(exc.message, exc.status_code) from exc
        except openai.APIConnectionError as exc:
            raise UpstreamModelError(f"OpenAI connection failed: {exc}") from exc

        message = response.choices[0].message
        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments_json=tc.function.arguments or "{}")
            for tc in (message.tool_calls or [])
            if tc.type == "function"
        ]
        usage = response.usage
        reply = ModelReply(
            content=message.content or "",
            tool_calls=tool_calls,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=response.model or model,
        )
        logger.debug(
            "api_response",
            backend="openai",
            model=reply.model,
            input_tokens=reply.input_tokens,
            output_tokens=reply.output_tokens,
            tool_calls=len(tool_calls),
        )
        return reply

    async def embed(self, text: str, model: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(model=model, input=text)
        except openai.APIStatusError as exc:
            raise UpstreamModelError(exc.message, exc.status_code) from exc
        except openai.APIConnectionError as exc:
            raise UpstreamModelError(f"OpenAI connection failed: {exc}") from exc
        return list(response.data[0].embedding)

    async def aclose(self) -> None:
        await self._client.close()


def _parse_arguments(arguments_json: str) -> dict[str, Any]:
    try:
        value = json.loads(arguments_json or "{}")
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}


def to_anthropic_messages(messages: list[dict[str, Any]]) -> tuple[str, list[dict[str, Any]]]:
    """Split OpenAI-format messages into an Anthropic system string and message list.

    Consecutive ``tool`` messages become one user turn of ``tool_result`` blocks.
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []

    for msg in messages:
        role = msg.get("role")
        if role == "system":
            system_parts.append(msg.get("content") or "")
        elif role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg["tool_call_id"],
                "content": msg.get("content") or "",
            }
            last = converted[-1] if converted else None
            if (
                last is not None
                and last["role"] == "user"
                and isinstance(last["content"], list)
                and all(b.get("type") == "tool_result" for b in last["content"])
            ):
                last["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
        elif role == "assistant" and msg.get("tool_calls"):
            content: list[dict[str, Any]] = []
            if msg.get("content"):
                content.append({"type": "text", "text": msg["content"]})
            for call in msg["tool_calls"]:
                content.append(
                    {
                        "type": "tool_use",
                        "id": call["id"],
                        "name": call["function"]["name"],
                        "input": _parse_arguments(call["function"].get("arguments", "{}")),
                    }
                )
            converted.append({"role": "assistant", "content": content})
        else:
            converted.append({"role": role, "content": msg.get("content") or ""})

    return "\n\n".join(p for p in system_parts if p), converted


class AnthropicClient(AIClient):
    """Anthropic messages backend using the official SDK."""

    service_name = "Anthropic"

    def __init__(self, api_key: str, config: AnthropicConfig):
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        tools: list[ToolSpec] | None = None,
    ) -> ModelReply:
        system, converted = to_anthropic_messages(messages)
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": converted,
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [t.to_anthropic_dict() for t in tools]
            kwargs["tool_choice"] = {"type": "auto"}

        logger.debug("api_request", backend="anthropic", model=model, message_count=len(converted))
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            raise UpstreamModelError(exc.message, exc.status_code) from exc
        except anthropic.APIConnectionError as exc:
            raise UpstreamModelError(f"Anthropic connection failed: {exc}") from exc

        text = "\n".join(b.text for b in response.content if b.type == "text")
        tool_calls = [
            ToolCall(id=b.id, name=b.name, arguments_json=json.dumps(b.input))
            for b in response.content
            if b.type == "tool_use"
        ]
        logger.debug(
            "api_response",
            backend="anthropic",
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )
        return ModelReply(
            content=text,
            tool_calls=tool_calls,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model or model,
        )

    async def aclose(self) -> None:
        await self._client.close()


def service_for_backend(backend: str) -> str:
    """Credential service name for a configured backend."""
    match backend:
        case "openai":
            return OpenAIClient.service_name
        case "anthropic":
            return AnthropicClient.service_name
        case _:
            raise ConfigurationError(f"Unknown AI backend: {backend}")


def create_ai_client(config: AppConfig, api_key: str, backend: Optional[str] = None) -> AIClient:
    """Factory: build a client for *backend* (default: the configured one)."""
    backend = backend or config.engine.backend
    match backend:
        case "openai":
            return OpenAIClient(api_key, config.openai)
        case "anthropic":
            return AnthropicClient(api_key, config.anthropic)
        case _:
            raise ConfigurationError(f"Unknown AI backend: {backend}")
