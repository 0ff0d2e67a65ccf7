"""Iterative tool execution loop for function-calling model responses."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

from avatar_chat.ai.client import AIClient, ToolCall
from avatar_chat.ai.tools.base import ToolContext
from avatar_chat.ai.tools.registry import ToolRegistry
from avatar_chat.core.types import Outcome, TurnState
from avatar_chat.log import get_logger

logger = get_logger(__name__)

MAX_TOOL_ROUNDS = 6

ROUND_LIMIT_REPLY = (
    "I'm sorry, I couldn't finish looking that up. Could you ask about one item at a "
    "time, or rephrase your question?"
)
CANCELLED_REPLY = "Sorry, this is taking longer than expected. Please try again in a moment."
EMPTY_REPLY = "Sorry, I don't have an answer for that right now. Could you rephrase your question?"


@dataclass
class ToolLoopResult:
    text: str
    outcome: Outcome
    model: str
    rounds: int = 0
    tool_calls_executed: list[str] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0


async def _execute_round(
    tool_registry: ToolRegistry, calls: list[ToolCall], ctx: ToolContext
) -> list[tuple[ToolCall, dict[str, Any]]]:
    """Run one round's calls concurrently; results come back in call order."""
    envelopes = await asyncio.gather(
        *(tool_registry.execute(call.name, call.arguments_json, ctx) for call in calls)
    )
    return list(zip(calls, envelopes))


async def run_tool_loop(
    ai_client: AIClient,
    tool_registry: ToolRegistry,
    messages: list[dict[str, Any]],
    model: str,
    max_tokens: int,
    temperature: float,
    ctx: ToolContext,
    max_rounds: int = MAX_TOOL_ROUNDS,
    cancel_event: asyncio.Event | None = None,
) -> ToolLoopResult:
    """Call the model until it answers without tool calls.

    *messages* is extended in place with every assistant tool-call message and
    one ``tool`` message per result, tagged with its call id.
    """
    declarations = tool_registry.declarations()
    result = ToolLoopResult(text="", outcome=Outcome.ANSWERED, model=model)

    while result.rounds < max_rounds:
        if cancel_event and cancel_event.is_set():
            logger.info("tool_loop_cancelled", round=result.rounds)
            result.text, result.outcome = CANCELLED_REPLY, Outcome.TIMED_OUT
            return result

        logger.info("engine_state", state=TurnState.MODEL_CALL, round=result.rounds, model=model)
        reply = await ai_client.chat(
            messages=messages,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            tools=declarations or None,
        )
        result.input_tokens += reply.input_tokens
        result.output_tokens += reply.output_tokens
        result.model = reply.model or model

        if not reply.tool_calls:
            result.text = reply.content.strip()
            if not result.text:
                logger.warning("model_reply_empty", round=result.rounds, model=result.model)
                result.text, result.outcome = EMPTY_REPLY, Outcome.EMPTY_REPLY
            messages.append({"role": "assistant", "content": result.text})
            return result

        messages.append(reply.assistant_message)

        if cancel_event and cancel_event.is_set():
            logger.info("tool_loop_cancelled_before_exec", round=result.rounds)
            result.text, result.outcome = CANCELLED_REPLY, Outcome.TIMED_OUT
            return result

        logger.info(
            "engine_state",
            state=TurnState.TOOL_EXECUTION,
            round=result.rounds,
            tools=[call.name for call in reply.tool_calls],
        )
        for call, envelope in await _execute_round(tool_registry, reply.tool_calls, ctx):
            result.tool_calls_executed.append(call.name)
            messages.append(
                {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(envelope, ensure_ascii=False, default=str),
                }
            )
        result.rounds += 1

    logger.warning("tool_round_limit", rounds=result.rounds, max_rounds=max_rounds)
    result.text, result.outcome = ROUND_LIMIT_REPLY, Outcome.ROUND_LIMIT
    return result
