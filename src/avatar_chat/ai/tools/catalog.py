"""Product catalog tools."""

from __future__ import annotations

from typing import Any

from avatar_chat.ai.tools.base import Tool, ToolContext, int_arg
from avatar_chat.catalog.accessor import CatalogAccessor
from avatar_chat.catalog.directives import build_image_directive
from avatar_chat.catalog.pricing import PricedProduct
from avatar_chat.errors import ToolExecutionError

UNCATEGORISED = "Uncategorised"


def _products_payload(products: list[PricedProduct]) -> tuple[list[dict[str, Any]], list[str]]:
    items: list[dict[str, Any]] = []
    directives: list[str] = []
    for product in products:
        items.append(product.to_dict())
        if product.image_url:
            directives.append(build_image_directive(product.image_url, product.name))
    return items, directives


class _CatalogTool(Tool):
    def __init__(self, catalog: CatalogAccessor):
        self._catalog = catalog


class BrowseCatalogTool(_CatalogTool):
    @property
    def name(self) -> str:
        return "browse_full_catalog"

    @property
    def description(self) -> str:
        return (
            "List the whole product catalog grouped by category, with current promotions "
            "applied. Use this first for broad questions such as 'what do you sell?', "
            "'show me your products' or 'do you have anything for ...?'."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "include_out_of_stock": {
                    "type": "boolean",
                    "description": "Also list products that are currently out of stock.",
                },
            },
            "required": [],
        }

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        include_out_of_stock = bool(kwargs.get("include_out_of_stock", False))
        products = await self._catalog.browse_catalog(
            ctx.avatar_id, include_out_of_stock=include_out_of_stock, now=ctx.now
        )
        grouped: dict[str, list[dict[str, Any]]] = {}
        directives: list[str] = []
        for product in products:
            items, product_directives = _products_payload([product])
            grouped.setdefault(product.category or UNCATEGORISED, []).extend(items)
            directives.extend(product_directives)
        return {
            "total_products": len(products),
            "categories": grouped,
            "display_directives": directives,
        }


class SearchProductsTool(_CatalogTool):
    @property
    def name(self) -> str:
        return "search_products"

    @property
    def description(self) -> str:
        return (
            "Look up products by a specific product name or SKU. Only use this when the "
            "customer names a product precisely; for general browsing use browse_full_catalog."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Product name, SKU or keyword."},
                "limit": {"type": "integer", "description": "Maximum results (default 10)."},
            },
            "required": ["query"],
        }

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        query = str(kwargs.get("query") or "").strip()
        if not query:
            raise ToolExecutionError("query is required")
        limit = int_arg(kwargs.get("limit"), default=10)
        products = await self._catalog.search_products(ctx.avatar_id, query, limit=limit, now=ctx.now)
        items, directives = _products_payload(products)
        return {
            "query": query,
            "count": len(items),
            "products": items,
            "display_directives": directives,
        }


class GetProductByIdTool(_CatalogTool):
    @property
    def name(self) -> str:
        return "get_product_by_id"

    @property
    def description(self) -> str:
        return "Get full details of one product, including its image, by product id."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "product_id": {"type": "string", "description": "The product id."},
            },
            "required": ["product_id"],
        }

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        product_id = str(kwargs.get("product_id") or "").strip()
        if not product_id:
            raise ToolExecutionError("product_id is required")
        product = await self._catalog.get_product_by_id(ctx.avatar_id, product_id, now=ctx.now)
        if product is None:
            raise ToolExecutionError(f"Product not found: {product_id}")
        items, directives = _products_payload([product])
        return {"product": items[0], "display_directives": directives}


class ListCategoriesTool(_CatalogTool):
    @property
    def name(self) -> str:
        return "list_product_categories"

    @property
    def description(self) -> str:
        return (
            "List the exact product category names. Call this before "
            "get_products_by_category so the category string matches exactly."
        )

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        categories = await self._catalog.list_categories(ctx.avatar_id)
        return {"categories": categories, "count": len(categories), "display_directives": []}


class GetProductsByCategoryTool(_CatalogTool):
    @property
    def name(self) -> str:
        return "get_products_by_category"

    @property
    def description(self) -> str:
        return (
            "List products in one category. The category must be an exact name returned "
            "by list_product_categories."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "category": {"type": "string", "description": "Exact category name."},
                "limit": {"type": "integer", "description": "Maximum results (default 20)."},
            },
            "required": ["category"],
        }

    async def execute(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        category = str(kwargs.get("category") or "").strip()
        if not category:
            raise ToolExecutionError("category is required")
        limit = int_arg(kwargs.get("limit"), default=20)
        products = await self._catalog.get_products_by_category(
            ctx.avatar_id, category, limit=limit, now=ctx.now
        )
        items, directives = _products_payload(products)
        return {
            "category": category,
            "count": len(items),
            "products": items,
            "display_directives": directives,
        }
