"""Tests for the tool registry and the built-in tools."""

from __future__ import annotations

import json
from typing import Any

import pytest

from avatar_chat.ai.tools.base import Tool, ToolContext, int_arg
from avatar_chat.ai.tools.registry import ToolRegistry
from avatar_chat.catalog.pricing import PRICE_KEYS
from avatar_chat.storage.memory_repo import MemoryRepository
from avatar_chat.storage.models import Memory, MemoryImage
from conftest import AVATAR_ID, NOW, OWNER_ID, make_product, make_promotion


@pytest.fixture
def registry(accessor, db) -> ToolRegistry:
    tools = ToolRegistry()
    tools.discover_and_register(accessor, MemoryRepository(db))
    return tools


def _ctx(**overrides: Any) -> ToolContext:
    data: dict[str, Any] = {"avatar_id": AVATAR_ID, "user_id": OWNER_ID, "now": NOW}
    data.update(overrides)
    return ToolContext(**data)


def _keys(value: Any) -> set[str]:
    if isinstance(value, dict):
        found = set(value)
        for item in value.values():
            found |= _keys(item)
        return found
    if isinstance(value, list):
        found: set[str] = set()
        for item in value:
            found |= _keys(item)
        return found
    return set()


@pytest.fixture
async def stocked(avatar, catalog_repo):
    await catalog_repo.save_product(make_product("p1", name="Rose Bouquet", category="Bouquets"))
    await catalog_repo.save_product(make_product("p2", name="Glass Vase", category="Vases"))
    await catalog_repo.save_product(make_product("p3", name="Gift Card", category=None, images=[]))
    await catalog_repo.save_promotion(
        make_promotion(
            "promo1",
            title="Spring Sale",
            promo_code="SPRING",
            banner_image_url="https://cdn.example.com/spring.jpg",
            max_discount=30,
            min_purchase=50,
        )
    )


def test_all_builtin_tools_declared(registry):
    assert {spec.name for spec in registry.declarations()} == {
        "browse_full_catalog",
        "search_products",
        "get_product_by_id",
        "list_product_categories",
        "get_products_by_category",
        "get_active_promotions",
        "validate_promo_code",
        "get_memory_images",
    }
    spec = next(s for s in registry.declarations() if s.name == "search_products")
    assert spec.to_openai_dict()["function"]["parameters"]["required"] == ["query"]
    assert spec.to_anthropic_dict()["input_schema"] == spec.parameters


async def test_browse_groups_by_category_with_directives(registry, stocked):
    envelope = await registry.execute("browse_full_catalog", "{}", _ctx())

    assert envelope["success"] is True
    assert envelope["total_products"] == 3
    assert set(envelope["categories"]) == {"Bouquets", "Vases", "Uncategorised"}
    rose = envelope["categories"]["Bouquets"][0]
    assert rose["discounted_price"] == 90.0
    assert "[IMAGE:https://cdn.example.com/p1.jpg:Rose Bouquet]" in envelope["display_directives"]
    assert len(envelope["display_directives"]) == 2


@pytest.mark.parametrize(
    "name, arguments",
    [
        ("browse_full_catalog", {}),
        ("search_products", {"query": "rose"}),
        ("get_product_by_id", {"product_id": "p1"}),
        ("get_products_by_category", {"category": "Bouquets"}),
        ("get_active_promotions", {}),
        ("validate_promo_code", {"code": "spring"}),
    ],
)
async def test_hidden_prices_never_reach_the_model(registry, stocked, name, arguments):
    ctx = _ctx(price_visible=False, contact_info="+60 12-345 6789")
    envelope = await registry.execute(name, json.dumps(arguments), ctx)

    assert envelope["success"] is True
    assert not _keys(envelope) & PRICE_KEYS
    assert envelope["price_hidden"] is True
    assert "+60 12-345 6789" in envelope["price_message"]
    assert "display_directives" in envelope


async def test_visible_prices_are_kept(registry, stocked):
    envelope = await registry.execute("get_active_promotions", "{}", _ctx())

    promotion = envelope["promotions"][0]
    assert promotion["discount_display"] == "10% OFF"
    assert "price_hidden" not in envelope
    assert envelope["display_directives"] == ["[IMAGE:https://cdn.example.com/spring.jpg:Spring Sale]"]


async def test_unknown_tool_gives_failure_envelope(registry):
    envelope = await registry.execute("order_pizza", "{}", _ctx())
    assert envelope == {"success": False, "error": "Unknown tool: order_pizza", "error_type": "tool_not_found"}


@pytest.mark.parametrize("arguments_json", ["{not json", "[1, 2]"])
async def test_bad_arguments_give_failure_envelope(registry, arguments_json):
    envelope = await registry.execute("search_products", arguments_json, _ctx())
    assert envelope["success"] is False
    assert envelope["error_type"] == "tool_execution_error"


async def test_missing_product_is_a_tool_failure(registry, stocked):
    envelope = await registry.execute("get_product_by_id", '{"product_id": "nope"}', _ctx())
    assert envelope["success"] is False
    assert "nope" in envelope["error"]


async def test_unexpected_exception_is_contained():
    class ExplodingTool(Tool):
        name = "explode"
        description = "Always fails."

        async def execute(self, ctx, **kwargs):
            raise RuntimeError("boom")

    registry = ToolRegistry()
    registry.register(ExplodingTool())
    envelope = await registry.execute("explode", "", _ctx())

    assert envelope == {
        "success": False,
        "error": "Error executing explode",
        "error_type": "tool_execution_error",
    }


async def test_invalid_promo_code_reports_reason(registry, stocked):
    envelope = await registry.execute("validate_promo_code", '{"code": "WINTER"}', _ctx())
    assert envelope["success"] is True
    assert envelope["valid"] is False
    assert envelope["reason"] == "not found"
    assert "promotion" not in envelope


@pytest.fixture
async def memories(db, avatar) -> MemoryRepository:
    repo = MemoryRepository(db)
    await repo.save_memory(Memory(id="m1", avatar_id=AVATAR_ID, user_id=OWNER_ID, title="Shop opening"))
    await repo.save_memory(
        Memory(id="m2", avatar_id=AVATAR_ID, user_id=OWNER_ID, title="Family trip", is_private=True)
    )
    await repo.save_memory_image(
        MemoryImage(id="i1", memory_id="m1", image_url="https://cdn.example.com/m1-a.jpg", caption="Ribbon")
    )
    await repo.save_memory_image(
        MemoryImage(
            id="i2", memory_id="m1", image_url="https://cdn.example.com/m1-b.jpg", is_primary=True
        )
    )
    return repo


async def test_memory_images_are_queued_not_returned(registry, memories):
    ctx = _ctx()
    envelope = await registry.execute("get_memory_images", '{"memory_id": "m1"}', ctx)

    assert envelope["success"] is True
    assert envelope["count"] == 2
    assert "https://" not in json.dumps(envelope)
    assert ctx.take_pending_images() == [
        {"url": "https://cdn.example.com/m1-b.jpg", "caption": "Shop opening"},
        {"url": "https://cdn.example.com/m1-a.jpg", "caption": "Ribbon"},
    ]
    assert ctx.pending_images == []


@pytest.mark.parametrize("memory_id", ["m2", "missing"])
async def test_private_or_unknown_memory_fails(registry, memories, memory_id):
    ctx = _ctx()
    envelope = await registry.execute("get_memory_images", json.dumps({"memory_id": memory_id}), ctx)

    assert envelope["success"] is False
    assert ctx.pending_images == []


async def test_memory_of_another_avatar_fails(registry, memories):
    ctx = _ctx(avatar_id="av-other")
    envelope = await registry.execute("get_memory_images", '{"memory_id": "m1"}', ctx)
    assert envelope["success"] is False


async def test_memory_of_another_user_fails(registry, memories):
    await memories.save_memory(Memory(id="mx", avatar_id=AVATAR_ID, user_id="someone-else", title="Their day"))
    await memories.save_memory_image(
        MemoryImage(id="ix", memory_id="mx", image_url="https://cdn.example.com/x.jpg")
    )
    ctx = _ctx()
    envelope = await registry.execute("get_memory_images", '{"memory_id": "mx"}', ctx)

    assert envelope["success"] is False
    assert ctx.pending_images == []


@pytest.mark.parametrize(
    "value, expected",
    [(None, 10), ("7", 7), ("x", 10), (0, 1), (500, 50)],
)
def test_int_arg_clamps_model_input(value, expected):
    assert int_arg(value, default=10) == expected
