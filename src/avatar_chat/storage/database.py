"""SQLite database connection manager with schema migration."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from avatar_chat.log import get_logger

logger = get_logger(__name__)

_NOW = "(strftime('%Y-%m-%dT%H:%M:%f','now'))"

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS avatars (
    id                      TEXT PRIMARY KEY,
    user_id                 TEXT    NOT NULL,
    name                    TEXT    NOT NULL,
    system_prompt           TEXT,
    business_context        TEXT,
    backstory               TEXT,
    company_name            TEXT,
    industry                TEXT,
    compliance_rules        TEXT    NOT NULL DEFAULT '[]',
    response_guidelines     TEXT    NOT NULL DEFAULT '[]',
    personality_traits      TEXT    NOT NULL DEFAULT '[]',
    price_visible           INTEGER NOT NULL DEFAULT 1,
    contact_info            TEXT,
    base_model              TEXT,
    active_fine_tuned_model TEXT,
    use_fine_tuned_model    INTEGER NOT NULL DEFAULT 0,
    created_at              TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS avatar_prompt_versions (
    id                  TEXT PRIMARY KEY,
    avatar_id           TEXT    NOT NULL REFERENCES avatars(id) ON DELETE CASCADE,
    version_number      INTEGER NOT NULL,
    system_prompt       TEXT    NOT NULL,
    personality_traits  TEXT    NOT NULL DEFAULT '[]',
    behavior_rules      TEXT    NOT NULL DEFAULT '[]',
    compliance_rules    TEXT    NOT NULL DEFAULT '[]',
    response_guidelines TEXT    NOT NULL DEFAULT '[]',
    response_style      TEXT,
    is_active           INTEGER NOT NULL DEFAULT 0,
    parent_version_id   TEXT REFERENCES avatar_prompt_versions(id),
    usage_count         INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT    NOT NULL DEFAULT {_NOW},
    UNIQUE (avatar_id, version_number)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_prompt_versions_one_active
    ON avatar_prompt_versions(avatar_id) WHERE is_active = 1;

CREATE TABLE IF NOT EXISTS chatbot_products (
    id              TEXT PRIMARY KEY,
    chatbot_id      TEXT    NOT NULL REFERENCES avatars(id) ON DELETE CASCADE,
    sku             TEXT    NOT NULL,
    product_name    TEXT    NOT NULL,
    description     TEXT,
    price           REAL    NOT NULL DEFAULT 0,
    currency        TEXT    NOT NULL DEFAULT 'MYR',
    category        TEXT,
    in_stock        INTEGER NOT NULL DEFAULT 1,
    stock_quantity  INTEGER,
    images          TEXT    NOT NULL DEFAULT '[]',
    tags            TEXT    NOT NULL DEFAULT '[]',
    created_at      TEXT    NOT NULL DEFAULT {_NOW},
    UNIQUE (chatbot_id, sku)
);

CREATE INDEX IF NOT EXISTS idx_products_category
    ON chatbot_products(chatbot_id, category);

CREATE TABLE IF NOT EXISTS chatbot_promotions (
    id                      TEXT PRIMARY KEY,
    chatbot_id              TEXT    NOT NULL REFERENCES avatars(id) ON DELETE CASCADE,
    title                   TEXT    NOT NULL,
    description             TEXT,
    promo_code              TEXT,
    discount_type           TEXT    NOT NULL DEFAULT 'percentage'
                            CHECK (discount_type IN ('percentage', 'fixed_amount')),
    discount_value          REAL    NOT NULL DEFAULT 0,
    max_discount            REAL,
    min_purchase            REAL,
    start_date              TEXT,
    end_date                TEXT,
    is_active               INTEGER NOT NULL DEFAULT 1,
    current_uses            INTEGER NOT NULL DEFAULT 0,
    max_uses                INTEGER,
    applies_to              TEXT    NOT NULL DEFAULT 'all',
    applies_to_categories   TEXT    NOT NULL DEFAULT '[]',
    applies_to_product_ids  TEXT    NOT NULL DEFAULT '[]',
    terms_and_conditions    TEXT,
    banner_image_url        TEXT,
    created_at              TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_promotions_code
    ON chatbot_promotions(chatbot_id, promo_code COLLATE NOCASE);

CREATE TABLE IF NOT EXISTS avatar_memories (
    id              TEXT PRIMARY KEY,
    avatar_id       TEXT    NOT NULL REFERENCES avatars(id) ON DELETE CASCADE,
    user_id         TEXT    NOT NULL,
    title           TEXT    NOT NULL,
    memory_date     TEXT,
    memory_summary  TEXT    NOT NULL DEFAULT '',
    details         TEXT    NOT NULL DEFAULT '{{}}',
    is_private      INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS memory_images (
    id          TEXT PRIMARY KEY,
    memory_id   TEXT    NOT NULL REFERENCES avatar_memories(id) ON DELETE CASCADE,
    image_url   TEXT    NOT NULL,
    caption     TEXT    NOT NULL DEFAULT '',
    is_primary  INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS knowledge_chunks (
    id              TEXT PRIMARY KEY,
    avatar_id       TEXT    NOT NULL REFERENCES avatars(id) ON DELETE CASCADE,
    chunk_text      TEXT    NOT NULL,
    embedding_json  TEXT    NOT NULL,
    section_title   TEXT,
    page_number     INTEGER,
    created_at      TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_knowledge_avatar ON knowledge_chunks(avatar_id);

CREATE TABLE IF NOT EXISTS admin_assigned_api_keys (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id             TEXT NOT NULL,
    service             TEXT NOT NULL,
    api_key_encrypted   TEXT NOT NULL,
    is_active           INTEGER NOT NULL DEFAULT 1,
    created_at          TEXT NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS user_api_keys (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id             TEXT NOT NULL,
    service             TEXT NOT NULL,
    api_key_encrypted   TEXT NOT NULL,
    status              TEXT NOT NULL DEFAULT 'active',
    created_at          TEXT NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS conversation_turns (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    avatar_id       TEXT    NOT NULL,
    session_id      TEXT    NOT NULL,
    contact         TEXT    NOT NULL,
    platform        TEXT    NOT NULL,
    role            TEXT    NOT NULL CHECK(role IN ('user','assistant')),
    content         TEXT    NOT NULL,
    model           TEXT    NOT NULL DEFAULT '',
    token_input     INTEGER NOT NULL DEFAULT 0,
    token_output    INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE INDEX IF NOT EXISTS idx_turns_session
    ON conversation_turns(avatar_id, session_id, created_at);

CREATE TABLE IF NOT EXISTS model_usage (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT    NOT NULL,
    avatar_id       TEXT    NOT NULL,
    model           TEXT    NOT NULL,
    input_tokens    INTEGER NOT NULL DEFAULT 0,
    output_tokens   INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL DEFAULT {_NOW}
);

CREATE TABLE IF NOT EXISTS human_handoffs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    avatar_id   TEXT NOT NULL,
    user_id     TEXT NOT NULL,
    platform    TEXT NOT NULL,
    contact     TEXT,
    reason      TEXT NOT NULL,
    message     TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT {_NOW}
);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection and run migrations."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
