"""Tests for loading a store from YAML."""

from __future__ import annotations

from pathlib import Path

from avatar_chat.catalog.accessor import CatalogAccessor
from avatar_chat.storage.avatar_repo import AvatarRepository
from avatar_chat.storage.catalog_repo import CatalogRepository
from avatar_chat.storage.credential_repo import CredentialRepository
from avatar_chat.storage.memory_repo import MemoryRepository
from avatar_chat.storage.seed import seed_from_file
from conftest import NOW

DEMO_STORE = Path(__file__).resolve().parent.parent / "demo_store.example.yaml"


async def test_demo_store_seeds(db, monkeypatch):
    monkeypatch.setenv("DEMO_OPENAI_API_KEY", "sk-demo")

    counts = await seed_from_file(db, DEMO_STORE)

    assert counts == {
        "avatars": 1,
        "prompt_versions": 1,
        "products": 3,
        "promotions": 1,
        "memories": 1,
        "api_keys": 1,
    }
    avatar = await AvatarRepository(db).get_avatar("demo-avatar", "demo-owner")
    assert avatar.company_name == "Bloom & Co"
    version = await AvatarRepository(db).get_active_prompt_version("demo-avatar")
    assert version.response_style.tone == "friendly"

    accessor = CatalogAccessor(CatalogRepository(db), clock=lambda: NOW)
    in_stock = await accessor.browse_catalog("demo-avatar")
    assert {p.id for p in in_stock} == {"p-rose", "p-sun"}
    assert all(p.has_discount for p in in_stock)
    assert (await accessor.validate_promo_code("demo-avatar", "bloom10")).valid

    images = await MemoryRepository(db).get_memory_images("mem-launch")
    assert [i.caption for i in images] == ["Opening ribbon cutting"]
    assert await CredentialRepository(db).resolve_model_credential("demo-owner") == "sk-demo"
