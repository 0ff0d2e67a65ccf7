"""Load avatars, catalog data and API keys from a YAML file (with ${VAR} interpolation).

Used by ``avatar-chat seed`` to set up a local store for the console channel.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from avatar_chat.config import interpolate_env_vars
from avatar_chat.log import get_logger
from avatar_chat.storage.avatar_repo import AvatarRepository
from avatar_chat.storage.catalog_repo import CatalogRepository
from avatar_chat.storage.credential_repo import CredentialRepository
from avatar_chat.storage.database import Database
from avatar_chat.storage.memory_repo import MemoryRepository
from avatar_chat.storage.models import Avatar, Memory, MemoryImage, Product, Promotion, PromptVersion

logger = get_logger(__name__)


async def seed_from_file(db: Database, path: str | Path) -> dict[str, int]:
    """Insert everything in *path*; returns counts per record type."""
    raw_text = interpolate_env_vars(Path(path).read_text(encoding="utf-8"))
    data: dict[str, Any] = yaml.safe_load(raw_text) or {}
    avatars = AvatarRepository(db)
    catalog = CatalogRepository(db)
    memories = MemoryRepository(db)
    credentials = CredentialRepository(db)
    counts = {"avatars": 0, "prompt_versions": 0, "products": 0, "promotions": 0, "memories": 0, "api_keys": 0}

    for raw in data.get("avatars", []):
        raw = dict(raw)
        versions = raw.pop("prompt_versions", [])
        products = raw.pop("products", [])
        promotions = raw.pop("promotions", [])
        memory_items = raw.pop("memories", [])

        avatar = Avatar(**raw)
        await avatars.save_avatar(avatar)
        counts["avatars"] += 1

        for item in versions:
            await avatars.save_prompt_version(PromptVersion(avatar_id=avatar.id, **item))
            counts["prompt_versions"] += 1
        for item in products:
            await catalog.save_product(Product(chatbot_id=avatar.id, **item))
            counts["products"] += 1
        for item in promotions:
            await catalog.save_promotion(Promotion(chatbot_id=avatar.id, **item))
            counts["promotions"] += 1
        for item in memory_items:
            item = dict(item)
            images = item.pop("images", [])
            memory = Memory(avatar_id=avatar.id, user_id=avatar.user_id, **item)
            await memories.save_memory(memory)
            for index, image in enumerate(images):
                image = {"id": f"{memory.id}-img{index}", **image, "memory_id": memory.id}
                await memories.save_memory_image(MemoryImage(**image))
            counts["memories"] += 1

    for key in data.get("api_keys", []):
        if key.get("operator"):
            await credentials.assign_operator_key(key["user_id"], key["service"], key["api_key"])
        else:
            await credentials.add_user_key(key["user_id"], key["service"], key["api_key"])
        counts["api_keys"] += 1

    logger.info("store_seeded", path=str(path), **counts)
    return counts
