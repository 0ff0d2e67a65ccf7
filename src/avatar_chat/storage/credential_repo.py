"""Model API credential resolution.

Keys are stored base64 encoded. An operator-assigned key always wins over the
user's own keys; among the user's keys the newest active one is used.
"""

from __future__ import annotations

import base64
import binascii
from typing import Optional

from avatar_chat.errors import ConfigurationError
from avatar_chat.log import get_logger
from avatar_chat.storage.database import Database

logger = get_logger(__name__)


def encode_key(api_key: str) -> str:
    return base64.b64encode(api_key.encode()).decode()


def decode_key(stored: str) -> str:
    try:
        return base64.b64decode(stored.encode(), validate=True).decode()
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ConfigurationError("Stored API key could not be decoded") from exc


class CredentialRepository:
    def __init__(self, db: Database):
        self._db = db

    async def resolve_model_credential(self, user_id: str, service: str = "OpenAI") -> str:
        """Return the plaintext key for *service*, or raise ConfigurationError."""
        cursor = await self._db.conn.execute(
            """SELECT api_key_encrypted FROM admin_assigned_api_keys
               WHERE user_id = ? AND service = ? AND is_active = 1
               ORDER BY created_at DESC, id DESC
               LIMIT 1""",
            (user_id, service),
        )
        row = await cursor.fetchone()
        source = "operator"
        if row is None:
            cursor = await self._db.conn.execute(
                """SELECT api_key_encrypted FROM user_api_keys
                   WHERE user_id = ? AND service = ? AND status = 'active'
                   ORDER BY created_at DESC, id DESC
                   LIMIT 1""",
                (user_id, service),
            )
            row = await cursor.fetchone()
            source = "user"
        if row is None:
            logger.warning("credential_missing", user_id=user_id, service=service)
            raise ConfigurationError(
                f"No {service} API key configured, contact your administrator"
            )
        logger.debug("credential_resolved", user_id=user_id, service=service, source=source)
        return decode_key(row["api_key_encrypted"])

    async def assign_operator_key(self, user_id: str, service: str, api_key: str) -> None:
        await self._db.conn.execute(
            """INSERT INTO admin_assigned_api_keys (user_id, service, api_key_encrypted)
               VALUES (?, ?, ?)""",
            (user_id, service, encode_key(api_key)),
        )
        await self._db.conn.commit()

    async def add_user_key(
        self, user_id: str, service: str, api_key: str, status: Optional[str] = "active"
    ) -> None:
        await self._db.conn.execute(
            """INSERT INTO user_api_keys (user_id, service, api_key_encrypted, status)
               VALUES (?, ?, ?, ?)""",
            (user_id, service, encode_key(api_key), status),
        )
        await self._db.conn.commit()
