"""Tests for the backend-neutral message format and client factory."""

from __future__ import annotations

import pytest

from avatar_chat.ai.client import (
    AnthropicClient,
    ModelReply,
    OpenAIClient,
    ToolCall,
    create_ai_client,
    service_for_backend,
    to_anthropic_messages,
)
from avatar_chat.config import AppConfig
from avatar_chat.errors import ConfigurationError


def test_assistant_message_with_tool_calls():
    reply = ModelReply(
        content="",
        tool_calls=[ToolCall(id="call_1", name="search_products", arguments_json='{"query": "rose"}')],
    )
    assert reply.assistant_message == {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "search_products", "arguments": '{"query": "rose"}'},
            }
        ],
    }
    assert ModelReply(content="Hi").assistant_message == {"role": "assistant", "content": "Hi"}


def test_anthropic_translation():
    messages = [
        {"role": "system", "content": "You are Mia."},
        {"role": "user", "content": "Roses and vases?"},
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {"id": "a", "type": "function", "function": {"name": "search_products", "arguments": '{"query": "rose"}'}},
                {"id": "b", "type": "function", "function": {"name": "search_products", "arguments": "not json"}},
            ],
        },
        {"role": "tool", "tool_call_id": "a", "content": '{"success": true}'},
        {"role": "tool", "tool_call_id": "b", "content": '{"success": false}'},
    ]

    system, converted = to_anthropic_messages(messages)

    assert system == "You are Mia."
    assert converted[0] == {"role": "user", "content": "Roses and vases?"}
    assert converted[1]["role"] == "assistant"
    assert [b["type"] for b in converted[1]["content"]] == ["tool_use", "tool_use"]
    assert converted[1]["content"][0]["input"] == {"query": "rose"}
    assert converted[1]["content"][1]["input"] == {}
    assert converted[2] == {
        "role": "user",
        "content": [
            {"type": "tool_result", "tool_use_id": "a", "content": '{"success": true}'},
            {"type": "tool_result", "tool_use_id": "b", "content": '{"success": false}'},
        ],
    }
    assert len(converted) == 3


def test_service_names():
    assert service_for_backend("openai") == "OpenAI"
    assert service_for_backend("anthropic") == "Anthropic"
    with pytest.raises(ConfigurationError):
        service_for_backend("llama")


async def test_factory_builds_configured_backend():
    config = AppConfig()
    openai_client = create_ai_client(config, "sk-test")
    anthropic_client = create_ai_client(config, "sk-ant-test", backend="anthropic")
    try:
        assert isinstance(openai_client, OpenAIClient)
        assert openai_client.supports_embeddings
        assert isinstance(anthropic_client, AnthropicClient)
        assert not anthropic_client.supports_embeddings
    finally:
        await openai_client.aclose()
        await anthropic_client.aclose()

    with pytest.raises(ConfigurationError):
        create_ai_client(config, "key", backend="llama")
