"""Promotion resolution and price redaction.

All functions here are pure. Callers pass ``now`` explicitly so that activity
checks are reproducible.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from avatar_chat.storage.models import Product, Promotion

PRICE_KEYS = frozenset(
    {
        "price",
        "discounted_price",
        "original_price",
        "sale_price",
        "discount_value",
        "discount_display",
        "max_discount",
        "min_purchase",
        "discount",
    }
)

PRICE_HIDDEN_MESSAGE = (
    "Prices are not shown in chat. Please contact our team for a quotation."
)

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class PricedProduct:
    """A product with the best applicable promotion resolved."""

    id: str
    sku: str
    name: str
    description: Optional[str]
    category: Optional[str]
    price: float
    currency: str
    in_stock: bool
    stock_quantity: Optional[int]
    image_url: Optional[str]
    tags: list[str] = field(default_factory=list)
    has_discount: bool = False
    discounted_price: Optional[float] = None
    discount_display: Optional[str] = None
    promotion_title: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if not self.has_discount:
            for key in ("discounted_price", "discount_display", "promotion_title"):
                data.pop(key)
        return data


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_promotion_active(promotion: Promotion, now: datetime) -> bool:
    """Active flag, inclusive date window and remaining uses all hold at *now*."""
    now = _as_utc(now)
    if not promotion.is_active:
        return False
    if promotion.start_date is not None and now < promotion.start_date:
        return False
    if promotion.end_date is not None and now > promotion.end_date:
        return False
    if promotion.max_uses is not None and promotion.current_uses >= promotion.max_uses:
        return False
    return True


def promotion_applies(promotion: Promotion, product: Product) -> bool:
    match promotion.applies_to:
        case "all":
            return True
        case "category":
            return product.category is not None and product.category in promotion.applies_to_categories
        case "products":
            return product.id in promotion.applies_to_product_ids
    return False


def discounted_price(price: float, promotion: Promotion) -> float:
    """Price after *promotion*, never negative, rounded half-up to cents."""
    list_price = Decimal(str(price))
    value = Decimal(str(promotion.discount_value))
    if promotion.discount_type == "percentage":
        reduction = list_price * value / Decimal(100)
        if promotion.max_discount is not None:
            reduction = min(reduction, Decimal(str(promotion.max_discount)))
    else:
        reduction = value
    result = max(Decimal(0), list_price - reduction)
    return float(result.quantize(_CENT, rounding=ROUND_HALF_UP))


def discount_display(promotion: Promotion, currency: str) -> str:
    if promotion.discount_type == "percentage":
        return f"{promotion.discount_value:g}% OFF"
    return f"{currency} {promotion.discount_value:g} OFF"


def price_product(product: Product, promotions: Iterable[Promotion], now: datetime) -> PricedProduct:
    best_price: Optional[float] = None
    best: Optional[Promotion] = None
    for promotion in promotions:
        if not is_promotion_active(promotion, now) or not promotion_applies(promotion, product):
            continue
        candidate = discounted_price(product.price, promotion)
        # strict comparison keeps the first promotion on ties
        if best_price is None or candidate < best_price:
            best_price, best = candidate, promotion

    priced = PricedProduct(
        id=product.id,
        sku=product.sku,
        name=product.name,
        description=product.description,
        category=product.category,
        price=product.price,
        currency=product.currency,
        in_stock=product.in_stock,
        stock_quantity=product.stock_quantity,
        image_url=product.image_url,
        tags=list(product.tags),
    )
    if best is None or best_price is None or best_price >= product.price:
        return priced
    return PricedProduct(
        **{
            **asdict(priced),
            "has_discount": True,
            "discounted_price": best_price,
            "discount_display": discount_display(best, product.currency),
            "promotion_title": best.title,
        }
    )


def apply_promotions(
    products: Iterable[Product], promotions: Iterable[Promotion], now: datetime
) -> list[PricedProduct]:
    promotions = list(promotions)
    return [price_product(product, promotions, now) for product in products]


def _strip_prices(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _strip_prices(v) for k, v in value.items() if k not in PRICE_KEYS}
    if isinstance(value, list):
        return [_strip_prices(item) for item in value]
    return value


def redact_prices(payload: dict[str, Any], contact_message: Optional[str] = None) -> dict[str, Any]:
    """Remove every price-bearing key at any depth and mark the payload as hidden."""
    redacted = _strip_prices(payload)
    redacted["price_hidden"] = True
    redacted["price_message"] = contact_message or PRICE_HIDDEN_MESSAGE
    return redacted
