"""Promotion tools."""

from __future__ import annotations

from typing import Any

from avatar_chat.ai.tools.base import Tool, ToolContext, int_arg
from avatar_chat.catalog.accessor import CatalogAccessor
from avatar_chat.catalog.directives import build_image_directive
from avatar_chat.catalog.pricing import discount_display
from avatar_chat.errors import ToolExecutionError
from avatar_chat.storage.models import Promotion


def promotion_to_dict(promotion: Promotion, currency: str) -> dict[str, Any]:
    return {
        "id": promotion.id,
        "title": promotion.title,
        "description": promotion.description,
        "promo_code": promotion.promo_code,
        "discount_type": promotion.discount_type,
        "discount_value": promotion.discount_value,
        "discount_display": discount_display(promotion, currency),
        "max_discount": promotion.max_discount,
        "min_purchase": promotion.min_purchase,
        "applies_to": promotion.applies_to,
        "applies_to_categories": promotion.applies_to_categories,
        "start_date": promotion.start_date.isoformat() if promotion.start_date else None,
        "end_date": promotion.end_date.isoformat() if promotion.end_date else None,
        "terms_and_conditions": promotion.terms_and_conditions,
        "banner_image_url": promotion.banner_image_url,
    }


class GetActivePromotionsTool(Tool):
    def __init__(self, catalog: CatalogAccessor):
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "get_active_promotions"

    @property
    def description(self) -> str:
        return (
            "List the promotions, discounts and deals that are valid right now. Use this "
            "whenever the customer asks about promos, sales, discounts or offers."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "limit": {"type": "integer", "description": "Maximum results (default 10)."},
            },
            "required": [],
        }

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        limit = int_arg(kwargs.get("limit"), default=10)
        promotions = await self._catalog.get_active_promotions(ctx.avatar_id, limit=limit, now=ctx.now)
        return {
            "count": len(promotions),
            "promotions": [promotion_to_dict(p, ctx.currency) for p in promotions],
            "display_directives": [
                build_image_directive(p.banner_image_url, p.title)
                for p in promotions
                if p.banner_image_url
            ],
        }


class ValidatePromoCodeTool(Tool):
    def __init__(self, catalog: CatalogAccessor):
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "validate_promo_code"

    @property
    def description(self) -> str:
        return "Check whether a promo code the customer typed is valid right now."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "code": {"type": "string", "description": "The promo code exactly as given."},
            },
            "required": ["code"],
        }

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        code = str(kwargs.get("code") or "").strip()
        if not code:
            raise ToolExecutionError("code is required")
        result = await self._catalog.validate_promo_code(ctx.avatar_id, code, now=ctx.now)
        payload: dict[str, Any] = {
            "code": code,
            "valid": result.valid,
            "reason": result.reason,
            "display_directives": [],
        }
        if result.promotion is not None and result.valid:
            payload["promotion"] = promotion_to_dict(result.promotion, ctx.currency)
            if result.promotion.banner_image_url:
                payload["display_directives"].append(
                    build_image_directive(result.promotion.banner_image_url, result.promotion.title)
                )
        return payload
