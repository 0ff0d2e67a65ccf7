"""Model selection and per-family output budgets."""

from __future__ import annotations

from typing import Optional

from avatar_chat.storage.models import Avatar

# Order matters: the first substring match wins, so "gpt-4o-mini" must precede
# "gpt-4o", which must precede "gpt-4".
MODEL_TOKEN_BUDGETS: tuple[tuple[str, int], ...] = (
    ("gpt-4o-mini", 2000),
    ("gpt-4o", 1500),
    ("gpt-4", 1000),
    ("gpt-3.5-turbo", 500),
    ("claude", 4096),
)
DEFAULT_MAX_TOKENS = 1000


def max_tokens_for(model: str) -> int:
    """Output token budget for *model*; fine-tuned ids inherit their family's budget."""
    name = model.lower()
    for family, budget in MODEL_TOKEN_BUDGETS:
        if family in name:
            return budget
    return DEFAULT_MAX_TOKENS


def select_model(avatar: Avatar, requested: Optional[str], default: str) -> tuple[str, bool]:
    """Pick the model for a turn. Returns ``(model, is_fine_tuned)``.

    Priority: enabled fine-tuned model, avatar base model, request, configured default.
    """
    if avatar.fine_tuned_model:
        return avatar.fine_tuned_model, True
    return avatar.base_model or requested or default, False
