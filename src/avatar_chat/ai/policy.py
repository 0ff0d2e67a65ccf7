"""Price-visibility policy: intent detection and the hand-off wording."""

from __future__ import annotations

import re
from typing import Optional

from avatar_chat.storage.models import Avatar

PRICE_INTENT_KEYWORDS: tuple[str, ...] = (
    "how much",
    "what's the price",
    "berapa harga",
    "price",
    "cost",
    "fee",
    "rate",
    "pricing",
    "budget",
    "quotation",
    "quote",
    "harga",
    "berapa",
    "价格",
    "多少钱",
    "价钱",
)

_LATIN_KEYWORDS = [k for k in PRICE_INTENT_KEYWORDS if k.isascii()]
_CJK_KEYWORDS = [k for k in PRICE_INTENT_KEYWORDS if not k.isascii()]
_LATIN_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(k) for k in sorted(_LATIN_KEYWORDS, key=len, reverse=True)) + r")s?\b",
    re.IGNORECASE,
)


def is_price_question(message: str) -> bool:
    """True when *message* asks about prices in English, Malay or Chinese."""
    text = message.replace("’", "'")
    if _LATIN_RE.search(text):
        return True
    return any(keyword in text for keyword in _CJK_KEYWORDS)


def price_contact_message(contact_info: Optional[str]) -> str:
    message = "Prices are not shared in chat. Our team will send you a quotation."
    if contact_info:
        message += f" You can also reach us at {contact_info}."
    return message


def escalation_reply(avatar: Avatar) -> str:
    """Fixed reply sent instead of a model answer when a hidden price is asked for."""
    reply = (
        "Thanks for your interest! Pricing depends on your exact requirements, so I've "
        "passed your question to our team and they will get back to you shortly with a quotation."
    )
    if avatar.contact_info:
        reply += f" You can also reach us directly at {avatar.contact_info}."
    return reply


def price_policy_block(avatar: Avatar) -> str:
    lines = [
        "=== PRICE POLICY (NON-NEGOTIABLE) ===",
        "- Never state, estimate, compare or hint at any price, discount amount or total.",
        "- Never write currency amounts or numbers that could be read as prices.",
        "- When pricing comes up, say our team will follow up with a quotation.",
    ]
    if avatar.contact_info:
        lines.append(f"- Customers can contact the team at: {avatar.contact_info}")
    lines.append("=== END PRICE POLICY ===")
    return "\n".join(lines)
