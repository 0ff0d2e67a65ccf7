"""Read-only catalog access with promotions resolved."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from avatar_chat.catalog.pricing import PricedProduct, apply_promotions, is_promotion_active
from avatar_chat.storage.catalog_repo import CatalogRepository
from avatar_chat.storage.models import Promotion


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PromoValidation:
    valid: bool
    reason: str
    promotion: Optional[Promotion] = None


@dataclass(frozen=True)
class CatalogOverview:
    """What the prompt tells the model about the store before any tool call."""

    categories: list[str] = field(default_factory=list)
    product_count: int = 0
    active_promotion_count: int = 0


class CatalogAccessor:
    """Catalog queries for one process. Every product leaves here priced."""

    def __init__(self, repo: CatalogRepository, clock: Callable[[], datetime] = _utcnow):
        self._repo = repo
        self._clock = clock

    async def _active_promotions(self, chatbot_id: str, now: datetime) -> list[Promotion]:
        return [p for p in await self._repo.list_promotions(chatbot_id) if is_promotion_active(p, now)]

    async def browse_catalog(
        self, chatbot_id: str, include_out_of_stock: bool = False, now: Optional[datetime] = None
    ) -> list[PricedProduct]:
        now = now or self._clock()
        products = await self._repo.list_products(chatbot_id, in_stock_only=not include_out_of_stock)
        return apply_promotions(products, await self._active_promotions(chatbot_id, now), now)

    async def search_products(
        self, chatbot_id: str, query: str, limit: int = 10, now: Optional[datetime] = None
    ) -> list[PricedProduct]:
        now = now or self._clock()
        if not query.strip():
            return []
        products = await self._repo.search_products(chatbot_id, query, limit)
        return apply_promotions(products, await self._active_promotions(chatbot_id, now), now)

    async def get_product_by_id(
        self, chatbot_id: str, product_id: str, now: Optional[datetime] = None
    ) -> Optional[PricedProduct]:
        now = now or self._clock()
        product = await self._repo.get_product(chatbot_id, product_id)
        if product is None:
            return None
        return apply_promotions([product], await self._active_promotions(chatbot_id, now), now)[0]

    async def list_categories(self, chatbot_id: str) -> list[str]:
        return await self._repo.list_categories(chatbot_id)

    async def get_products_by_category(
        self, chatbot_id: str, category: str, limit: int = 20, now: Optional[datetime] = None
    ) -> list[PricedProduct]:
        now = now or self._clock()
        products = await self._repo.products_by_category(chatbot_id, category, limit)
        return apply_promotions(products, await self._active_promotions(chatbot_id, now), now)

    async def get_active_promotions(
        self, chatbot_id: str, limit: int = 10, now: Optional[datetime] = None
    ) -> list[Promotion]:
        """Currently valid promotions, newest first. The limit applies after filtering."""
        now = now or self._clock()
        return (await self._active_promotions(chatbot_id, now))[: max(limit, 0)]

    async def validate_promo_code(
        self, chatbot_id: str, code: str, now: Optional[datetime] = None
    ) -> PromoValidation:
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if not code.strip():
            return PromoValidation(valid=False, reason="not found")
        promotion = await self._repo.find_promotion_by_code(chatbot_id, code)
        if promotion is None:
            return PromoValidation(valid=False, reason="not found")

        if not promotion.is_active:
            reason = "inactive"
        elif promotion.start_date is not None and now < promotion.start_date:
            reason = "not started"
        elif promotion.end_date is not None and now > promotion.end_date:
            reason = "expired"
        elif promotion.max_uses is not None and promotion.current_uses >= promotion.max_uses:
            reason = "max uses reached"
        else:
            return PromoValidation(valid=True, reason="valid", promotion=promotion)
        return PromoValidation(valid=False, reason=reason, promotion=promotion)

    async def catalog_overview(self, chatbot_id: str, now: Optional[datetime] = None) -> CatalogOverview:
        now = now or self._clock()
        categories = await self._repo.list_categories(chatbot_id)
        products = await self._repo.list_products(chatbot_id)
        promotions = await self._active_promotions(chatbot_id, now)
        return CatalogOverview(
            categories=categories,
            product_count=len(products),
            active_promotion_count=len(promotions),
        )
