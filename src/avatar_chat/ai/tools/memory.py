"""Memory photo tool."""

from __future__ import annotations

from typing import Any

from avatar_chat.ai.tools.base import Tool, ToolContext
from avatar_chat.errors import ToolExecutionError
from avatar_chat.storage.memory_repo import MemoryRepository


class GetMemoryImagesTool(Tool):
    """Queues a memory's photos for the reply instead of handing URLs to the model."""

    def __init__(self, memories: MemoryRepository):
        self._memories = memories

    @property
    def name(self) -> str:
        return "get_memory_images"

    @property
    def description(self) -> str:
        return (
            "Fetch the photos attached to one memory. The photos are shown to the user "
            "automatically; never write image links or markdown for them yourself."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "memory_id": {"type": "string", "description": "The memory id from the MEMORIES list."},
            },
            "required": ["memory_id"],
        }

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        memory_id = str(kwargs.get("memory_id") or "").strip()
        memory = await self._memories.get_memory(memory_id) if memory_id else None
        if (
            memory is None
            or memory.avatar_id != ctx.avatar_id
            or memory.user_id != ctx.user_id
            or memory.is_private
        ):
            raise ToolExecutionError(f"Memory not found: {memory_id}")

        images = await self._memories.get_memory_images(memory_id)
        for image in images:
            ctx.add_pending_image(image.image_url, image.caption or memory.title)
        return {
            "memory_id": memory_id,
            "title": memory.title,
            "count": len(images),
            "captions": [image.caption for image in images],
            "note": "The photos will be attached to your reply automatically. Describe them in words only.",
            "display_directives": [],
        }
