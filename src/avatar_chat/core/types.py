"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Platform(StrEnum):
    WEB = "web"
    WHATSAPP = "whatsapp"
    API = "api"
    CONSOLE = "console"


class TurnState(StrEnum):
    INIT = "init"
    POLICY_CHECK = "policy_check"
    MODEL_CALL = "model_call"
    TOOL_EXECUTION = "tool_execution"
    DONE = "done"
    ERROR = "error"


class Outcome(StrEnum):
    ANSWERED = "answered"
    ESCALATED = "escalated"  # price question with prices hidden, handed to a human
    ROUND_LIMIT = "round_limit"
    TIMED_OUT = "timed_out"
    EMPTY_REPLY = "empty_reply"
