"""Avatar profiles and their prompt versions."""

from __future__ import annotations

import json
from typing import Optional

from avatar_chat.log import get_logger
from avatar_chat.storage.database import Database
from avatar_chat.storage.models import Avatar, PromptVersion

logger = get_logger(__name__)


class AvatarRepository:
    """Reads avatar configuration and maintains the one-active-version rule."""

    def __init__(self, db: Database):
        self._db = db

    async def get_avatar(self, avatar_id: str, user_id: str) -> Optional[Avatar]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM avatars WHERE id = ? AND user_id = ?",
            (avatar_id, user_id),
        )
        row = await cursor.fetchone()
        return Avatar(**dict(row)) if row else None

    async def save_avatar(self, avatar: Avatar) -> None:
        await self._db.conn.execute(
            """INSERT INTO avatars
               (id, user_id, name, system_prompt, business_context, backstory,
                company_name, industry, compliance_rules, response_guidelines,
                personality_traits, price_visible, contact_info, base_model,
                active_fine_tuned_model, use_fine_tuned_model)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                 name = excluded.name,
                 system_prompt = excluded.system_prompt,
                 business_context = excluded.business_context,
                 backstory = excluded.backstory,
                 company_name = excluded.company_name,
                 industry = excluded.industry,
                 compliance_rules = excluded.compliance_rules,
                 response_guidelines = excluded.response_guidelines,
                 personality_traits = excluded.personality_traits,
                 price_visible = excluded.price_visible,
                 contact_info = excluded.contact_info,
                 base_model = excluded.base_model,
                 active_fine_tuned_model = excluded.active_fine_tuned_model,
                 use_fine_tuned_model = excluded.use_fine_tuned_model""",
            (
                avatar.id,
                avatar.user_id,
                avatar.name,
                avatar.system_prompt,
                avatar.business_context,
                avatar.backstory,
                avatar.company_name,
                avatar.industry,
                json.dumps(avatar.compliance_rules),
                json.dumps(avatar.response_guidelines),
                json.dumps(avatar.personality_traits),
                int(avatar.price_visible),
                avatar.contact_info,
                avatar.base_model,
                avatar.active_fine_tuned_model,
                int(avatar.use_fine_tuned_model),
            ),
        )
        await self._db.conn.commit()

    async def get_active_prompt_version(self, avatar_id: str) -> Optional[PromptVersion]:
        cursor = await self._db.conn.execute(
            """SELECT * FROM avatar_prompt_versions
               WHERE avatar_id = ? AND is_active = 1
               ORDER BY version_number DESC
               LIMIT 1""",
            (avatar_id,),
        )
        row = await cursor.fetchone()
        return PromptVersion(**dict(row)) if row else None

    async def save_prompt_version(self, version: PromptVersion) -> None:
        """Insert a new immutable version. Activation goes through activate_prompt_version."""
        await self._db.conn.execute(
            """INSERT INTO avatar_prompt_versions
               (id, avatar_id, version_number, system_prompt, personality_traits,
                behavior_rules, compliance_rules, response_guidelines,
                response_style, is_active, parent_version_id)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)""",
            (
                version.id,
                version.avatar_id,
                version.version_number,
                version.system_prompt,
                json.dumps(version.personality_traits),
                json.dumps(version.behavior_rules),
                json.dumps(version.compliance_rules),
                json.dumps(version.response_guidelines),
                version.response_style.model_dump_json() if version.response_style else None,
                version.parent_version_id,
            ),
        )
        await self._db.conn.commit()
        if version.is_active:
            await self.activate_prompt_version(version.avatar_id, version.id)

    async def activate_prompt_version(self, avatar_id: str, version_id: str) -> bool:
        """Make *version_id* the only active version of the avatar."""
        conn = self._db.conn
        cursor = await conn.execute(
            "SELECT 1 FROM avatar_prompt_versions WHERE id = ? AND avatar_id = ?",
            (version_id, avatar_id),
        )
        if await cursor.fetchone() is None:
            return False
        try:
            # siblings first, so the partial unique index never sees two active rows
            await conn.execute(
                "UPDATE avatar_prompt_versions SET is_active = 0 WHERE avatar_id = ?",
                (avatar_id,),
            )
            await conn.execute(
                "UPDATE avatar_prompt_versions SET is_active = 1 WHERE id = ?",
                (version_id,),
            )
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
        logger.info("prompt_version_activated", avatar_id=avatar_id, version_id=version_id)
        return True

    async def record_prompt_version_usage(self, version_id: str) -> None:
        await self._db.conn.execute(
            "UPDATE avatar_prompt_versions SET usage_count = usage_count + 1 WHERE id = ?",
            (version_id,),
        )
        await self._db.conn.commit()
