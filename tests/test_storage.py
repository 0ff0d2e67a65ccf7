"""Tests for the repositories that carry invariants of their own."""

from __future__ import annotations

import pytest

from avatar_chat.errors import ConfigurationError
from avatar_chat.storage.avatar_repo import AvatarRepository
from avatar_chat.storage.conversation_repo import ConversationRepository
from avatar_chat.storage.credential_repo import CredentialRepository, decode_key, encode_key
from avatar_chat.storage.memory_repo import MemoryRepository
from avatar_chat.storage.models import ConversationRecord, Memory, MemoryImage, PromptVersion
from conftest import AVATAR_ID, OWNER_ID, make_avatar


async def _active_ids(db) -> list[str]:
    cursor = await db.conn.execute(
        "SELECT id FROM avatar_prompt_versions WHERE avatar_id = ? AND is_active = 1", (AVATAR_ID,)
    )
    return [row["id"] for row in await cursor.fetchall()]


async def test_avatar_round_trip_and_upsert(db):
    repo = AvatarRepository(db)
    await repo.save_avatar(make_avatar(compliance_rules=["No medical claims"], price_visible=False))
    await repo.save_avatar(make_avatar(name="Mia 2", compliance_rules=["No medical claims"]))

    avatar = await repo.get_avatar(AVATAR_ID, OWNER_ID)
    assert avatar.name == "Mia 2"
    assert avatar.compliance_rules == ["No medical claims"]
    assert avatar.price_visible is True
    assert await repo.get_avatar(AVATAR_ID, "intruder") is None


async def test_only_one_prompt_version_is_active(db, avatar):
    repo = AvatarRepository(db)
    await repo.save_prompt_version(
        PromptVersion(id="v1", avatar_id=AVATAR_ID, version_number=1, system_prompt="One", is_active=True)
    )
    await repo.save_prompt_version(
        PromptVersion(id="v2", avatar_id=AVATAR_ID, version_number=2, system_prompt="Two", is_active=True)
    )
    assert await _active_ids(db) == ["v2"]

    assert await repo.activate_prompt_version(AVATAR_ID, "v1") is True
    assert await _active_ids(db) == ["v1"]
    assert (await repo.get_active_prompt_version(AVATAR_ID)).system_prompt == "One"

    assert await repo.activate_prompt_version(AVATAR_ID, "missing") is False
    assert await _active_ids(db) == ["v1"]


async def test_inactive_version_is_not_served(db, avatar):
    repo = AvatarRepository(db)
    await repo.save_prompt_version(PromptVersion(id="v1", avatar_id=AVATAR_ID, system_prompt="Draft"))
    assert await repo.get_active_prompt_version(AVATAR_ID) is None


async def test_operator_key_wins_over_user_key(db):
    repo = CredentialRepository(db)
    await repo.add_user_key(OWNER_ID, "OpenAI", "sk-user")
    await repo.assign_operator_key(OWNER_ID, "OpenAI", "sk-operator")

    assert await repo.resolve_model_credential(OWNER_ID, "OpenAI") == "sk-operator"


async def test_newest_active_user_key_is_used(db):
    repo = CredentialRepository(db)
    await repo.add_user_key(OWNER_ID, "OpenAI", "sk-old")
    await repo.add_user_key(OWNER_ID, "OpenAI", "sk-new")
    await repo.add_user_key(OWNER_ID, "OpenAI", "sk-revoked", status="revoked")
    await repo.add_user_key(OWNER_ID, "Anthropic", "sk-ant")

    assert await repo.resolve_model_credential(OWNER_ID, "OpenAI") == "sk-new"
    assert await repo.resolve_model_credential(OWNER_ID, "Anthropic") == "sk-ant"


async def test_missing_key_raises(db):
    with pytest.raises(ConfigurationError, match="No OpenAI API key configured"):
        await CredentialRepository(db).resolve_model_credential(OWNER_ID, "OpenAI")


def test_key_encoding():
    assert decode_key(encode_key("sk-test-123")) == "sk-test-123"
    with pytest.raises(ConfigurationError):
        decode_key("not base64!")


async def test_recent_memories_skip_private_and_count_photos(db, avatar):
    repo = MemoryRepository(db)
    await repo.save_memory(
        Memory(id="old", avatar_id=AVATAR_ID, user_id=OWNER_ID, title="Old", memory_date="2020-01-01")
    )
    await repo.save_memory(
        Memory(id="new", avatar_id=AVATAR_ID, user_id=OWNER_ID, title="New", memory_date="2024-05-01")
    )
    await repo.save_memory(
        Memory(id="secret", avatar_id=AVATAR_ID, user_id=OWNER_ID, title="Secret", is_private=True)
    )
    await repo.save_memory_image(MemoryImage(id="i1", memory_id="new", image_url="https://x/1.jpg"))
    await repo.save_memory_image(MemoryImage(id="i2", memory_id="new", image_url="https://x/2.jpg"))

    memories = await repo.get_recent_memories(AVATAR_ID, OWNER_ID)

    assert [(m.id, m.image_count) for m in memories] == [("new", 2), ("old", 0)]
    assert len(await repo.get_recent_memories(AVATAR_ID, OWNER_ID, limit=1)) == 1


async def test_session_history_returns_latest_turns_oldest_first(db):
    repo = ConversationRepository(db)
    for index in range(5):
        await repo.save_turn(
            ConversationRecord(
                avatar_id=AVATAR_ID,
                session_id="s1",
                contact="+60123",
                platform="whatsapp",
                role="user" if index % 2 == 0 else "assistant",
                content=f"turn {index}",
            )
        )

    history = await repo.get_session_history(AVATAR_ID, "s1", limit=3)
    assert [r.content for r in history] == ["turn 2", "turn 3", "turn 4"]
    assert await repo.delete_session(AVATAR_ID, "s1") == 5
    assert await repo.get_session_history(AVATAR_ID, "s1") == []
