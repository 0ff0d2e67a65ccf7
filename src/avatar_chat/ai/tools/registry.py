"""Tool registry: declarations for the model and envelope-producing execution."""

from __future__ import annotations

import json
from typing import Any

from avatar_chat.ai.policy import price_contact_message
from avatar_chat.ai.tools.base import Tool, ToolContext, ToolSpec
from avatar_chat.catalog.accessor import CatalogAccessor
from avatar_chat.catalog.pricing import redact_prices
from avatar_chat.errors import ToolExecutionError, ToolNotFound
from avatar_chat.log import get_logger
from avatar_chat.storage.memory_repo import MemoryRepository

logger = get_logger(__name__)


class ToolRegistry:
    """Registry of all available tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        logger.debug("tool_registered", tool_name=tool.name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def all_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def declarations(self) -> list[ToolSpec]:
        return [tool.to_spec() for tool in self._tools.values()]

    def discover_and_register(self, catalog: CatalogAccessor, memories: MemoryRepository) -> None:
        """Register all built-in tools."""
        from avatar_chat.ai.tools.catalog import (
            BrowseCatalogTool,
            GetProductByIdTool,
            GetProductsByCategoryTool,
            ListCategoriesTool,
            SearchProductsTool,
        )
        from avatar_chat.ai.tools.memory import GetMemoryImagesTool
        from avatar_chat.ai.tools.promotions import GetActivePromotionsTool, ValidatePromoCodeTool

        self.register(BrowseCatalogTool(catalog))
        self.register(SearchProductsTool(catalog))
        self.register(GetProductByIdTool(catalog))
        self.register(ListCategoriesTool(catalog))
        self.register(GetProductsByCategoryTool(catalog))
        self.register(GetActivePromotionsTool(catalog))
        self.register(ValidatePromoCodeTool(catalog))
        self.register(GetMemoryImagesTool(memories))

    async def execute(self, name: str, arguments_json: str, ctx: ToolContext) -> dict[str, Any]:
        """Run one tool call and return its envelope. Never raises for tool failures."""
        try:
            tool = self.get(name)
            if tool is None:
                raise ToolNotFound(name)
            try:
                arguments = json.loads(arguments_json or "{}")
            except json.JSONDecodeError as exc:
                raise ToolExecutionError(f"Invalid JSON arguments for {name}") from exc
            if not isinstance(arguments, dict):
                raise ToolExecutionError(f"Arguments for {name} must be a JSON object")
            data = await tool.execute(ctx, **arguments)
        except ToolExecutionError as exc:
            logger.warning("tool_execution_error", tool=name, error_kind=exc.kind, error=exc.message)
            return {"success": False, "error": exc.message, "error_type": exc.kind}
        except Exception as exc:
            logger.error("tool_execution_error", tool=name, error_kind="unexpected", error=str(exc))
            return {
                "success": False,
                "error": f"Error executing {name}",
                "error_type": ToolExecutionError.kind,
            }

        envelope: dict[str, Any] = {"success": True, **data}
        envelope.setdefault("display_directives", [])
        if not ctx.price_visible:
            envelope = redact_prices(envelope, price_contact_message(ctx.contact_info))
        logger.debug("tool_executed", tool=name, success=True)
        return envelope

