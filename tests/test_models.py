"""Tests for model selection and output budgets."""

from __future__ import annotations

import pytest

from avatar_chat.ai.models import DEFAULT_MAX_TOKENS, max_tokens_for, select_model
from conftest import make_avatar


@pytest.mark.parametrize(
    "model, budget",
    [
        ("gpt-4o-mini", 2000),
        ("gpt-4o-mini-2024-07-18", 2000),
        ("ft:gpt-4o-mini-2024-07-18:bloom::abc123", 2000),
        ("gpt-4o", 1500),
        ("gpt-4-turbo", 1000),
        ("gpt-3.5-turbo", 500),
        ("claude-3-5-sonnet-latest", 4096),
        ("mistral-large", DEFAULT_MAX_TOKENS),
    ],
)
def test_max_tokens_by_family(model, budget):
    assert max_tokens_for(model) == budget


def test_enabled_fine_tuned_model_wins():
    avatar = make_avatar(active_fine_tuned_model="ft:abc", use_fine_tuned_model=True, base_model="gpt-4o")
    assert select_model(avatar, "gpt-3.5-turbo", "gpt-4o-mini") == ("ft:abc", True)


def test_disabled_fine_tuned_model_is_ignored():
    avatar = make_avatar(active_fine_tuned_model="ft:abc", use_fine_tuned_model=False)
    assert select_model(avatar, None, "gpt-4o-mini") == ("gpt-4o-mini", False)


def test_base_model_then_request_then_default():
    assert select_model(make_avatar(base_model="gpt-4o"), "gpt-4", "d") == ("gpt-4o", False)
    assert select_model(make_avatar(), "gpt-4", "d") == ("gpt-4", False)
    assert select_model(make_avatar(), None, "d") == ("d", False)
