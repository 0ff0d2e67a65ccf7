"""Typed failures raised by the response engine."""

from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Base class for every failure the engine reports to its callers."""

    kind = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(EngineError):
    """Missing avatar, missing model credential, or an unusable backend setting."""

    kind = "configuration_error"


class UpstreamModelError(EngineError):
    """The language-model provider answered with a failure."""

    kind = "upstream_model_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(EngineError):
    """The datastore could not serve the reads a turn depends on."""

    kind = "storage_error"


class ToolExecutionError(EngineError):
    """A single tool call failed. Turned into a failure envelope for the model."""

    kind = "tool_execution_error"


class ToolNotFound(ToolExecutionError):
    kind = "tool_not_found"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.tool_name = name
