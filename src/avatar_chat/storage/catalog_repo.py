"""Product and promotion reads (plus the writes used by seeding and tests)."""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import ValidationError

from avatar_chat.log import get_logger
from avatar_chat.storage.database import Database
from avatar_chat.storage.models import Product, Promotion

logger = get_logger(__name__)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CatalogRepository:
    """Raw catalog queries. Pricing policy lives in avatar_chat.catalog."""

    def __init__(self, db: Database):
        self._db = db

    async def list_products(self, chatbot_id: str, in_stock_only: bool = False) -> list[Product]:
        sql = "SELECT * FROM chatbot_products WHERE chatbot_id = ?"
        if in_stock_only:
            sql += " AND in_stock = 1"
        sql += " ORDER BY COALESCE(category, '') ASC, product_name ASC"
        cursor = await self._db.conn.execute(sql, (chatbot_id,))
        return [self._row_to_product(row) for row in await cursor.fetchall()]

    async def search_products(self, chatbot_id: str, query: str, limit: int = 10) -> list[Product]:
        pattern = f"%{_escape_like(query.strip())}%"
        cursor = await self._db.conn.execute(
            """SELECT * FROM chatbot_products
               WHERE chatbot_id = ?
                 AND (product_name LIKE ? ESCAPE '\\'
                      OR category LIKE ? ESCAPE '\\'
                      OR sku LIKE ? ESCAPE '\\'
                      OR description LIKE ? ESCAPE '\\')
               ORDER BY created_at DESC, rowid DESC
               LIMIT ?""",
            (chatbot_id, pattern, pattern, pattern, pattern, limit),
        )
        return [self._row_to_product(row) for row in await cursor.fetchall()]

    async def get_product(self, chatbot_id: str, product_id: str) -> Optional[Product]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM chatbot_products WHERE id = ? AND chatbot_id = ?",
            (product_id, chatbot_id),
        )
        row = await cursor.fetchone()
        return self._row_to_product(row) if row else None

    async def list_categories(self, chatbot_id: str) -> list[str]:
        cursor = await self._db.conn.execute(
            """SELECT DISTINCT category FROM chatbot_products
               WHERE chatbot_id = ? AND category IS NOT NULL AND category != ''
               ORDER BY category ASC""",
            (chatbot_id,),
        )
        return [row["category"] for row in await cursor.fetchall()]

    async def products_by_category(self, chatbot_id: str, category: str, limit: int = 20) -> list[Product]:
        cursor = await self._db.conn.execute(
            """SELECT * FROM chatbot_products
               WHERE chatbot_id = ? AND category = ?
               ORDER BY created_at DESC, rowid DESC
               LIMIT ?""",
            (chatbot_id, category, limit),
        )
        return [self._row_to_product(row) for row in await cursor.fetchall()]

    async def list_promotions(self, chatbot_id: str) -> list[Promotion]:
        """Promotions flagged active, newest first. Date and usage checks are the caller's."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM chatbot_promotions
               WHERE chatbot_id = ? AND is_active = 1
               ORDER BY created_at DESC, rowid DESC""",
            (chatbot_id,),
        )
        promotions = [self._row_to_promotion(row) for row in await cursor.fetchall()]
        return [promo for promo in promotions if promo is not None]

    async def find_promotion_by_code(self, chatbot_id: str, code: str) -> Optional[Promotion]:
        """Case-insensitive code lookup, active-flag rows preferred."""
        cursor = await self._db.conn.execute(
            """SELECT * FROM chatbot_promotions
               WHERE chatbot_id = ? AND promo_code = ? COLLATE NOCASE
               ORDER BY is_active DESC, created_at DESC
               LIMIT 1""",
            (chatbot_id, code.strip()),
        )
        row = await cursor.fetchone()
        return self._row_to_promotion(row) if row else None

    async def save_product(self, product: Product) -> None:
        await self._db.conn.execute(
            """INSERT OR REPLACE INTO chatbot_products
               (id, chatbot_id, sku, product_name, description, price, currency,
                category, in_stock, stock_quantity, images, tags)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                product.id,
                product.chatbot_id,
                product.sku,
                product.name,
                product.description,
                product.price,
                product.currency,
                product.category,
                int(product.in_stock),
                product.stock_quantity,
                json.dumps(product.images),
                json.dumps(product.tags),
            ),
        )
        await self._db.conn.commit()

    async def save_promotion(self, promotion: Promotion) -> None:
        await self._db.conn.execute(
            """INSERT OR REPLACE INTO chatbot_promotions
               (id, chatbot_id, title, description, promo_code, discount_type,
                discount_value, max_discount, min_purchase, start_date, end_date,
                is_active, current_uses, max_uses, applies_to, applies_to_categories,
                applies_to_product_ids, terms_and_conditions, banner_image_url)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                promotion.id,
                promotion.chatbot_id,
                promotion.title,
                promotion.description,
                promotion.promo_code,
                promotion.discount_type,
                promotion.discount_value,
                promotion.max_discount,
                promotion.min_purchase,
                promotion.start_date.isoformat() if promotion.start_date else None,
                promotion.end_date.isoformat() if promotion.end_date else None,
                int(promotion.is_active),
                promotion.current_uses,
                promotion.max_uses,
                promotion.applies_to,
                json.dumps(promotion.applies_to_categories),
                json.dumps(promotion.applies_to_product_ids),
                promotion.terms_and_conditions,
                promotion.banner_image_url,
            ),
        )
        await self._db.conn.commit()

    @staticmethod
    def _row_to_product(row: Any) -> Product:
        data = dict(row)
        data["name"] = data.pop("product_name")
        return Product(**data)

    @staticmethod
    def _row_to_promotion(row: Any) -> Optional[Promotion]:
        """Stored rows that fail validation are logged and treated as absent."""
        try:
            return Promotion(**dict(row))
        except ValidationError as exc:
            logger.warning(
                "promotion_row_invalid",
                promotion_id=row["id"],
                errors=[err["msg"] for err in exc.errors()],
            )
            return None
