"""Tests for price-intent detection and hand-off wording."""

from __future__ import annotations

import pytest

from avatar_chat.ai.policy import escalation_reply, is_price_question, price_policy_block
from conftest import make_avatar


@pytest.mark.parametrize(
    "message",
    [
        "How much is the rose bouquet?",
        "What’s the price of delivery?",
        "prices please",
        "What are your rates for events?",
        "Can you send me a quotation?",
        "Berapa harga bunga ini?",
        "berapa ni",
        "这个多少钱？",
        "价格是多少",
        "Is there a delivery FEE?",
    ],
)
def test_price_questions_detected(message):
    assert is_price_question(message)


@pytest.mark.parametrize(
    "message",
    [
        "Do you deliver on Sunday?",
        "Please separate the lilies",
        "Is the colour accurate?",
        "Can I get a coffee table arrangement?",
        "Is this an appropriate gift?",
        "Costumes for the party",
        "",
    ],
)
def test_other_questions_not_detected(message):
    assert not is_price_question(message)


def test_escalation_reply_mentions_contact_when_present():
    with_contact = escalation_reply(make_avatar(contact_info="+60 12-345 6789"))
    without = escalation_reply(make_avatar())

    assert "+60 12-345 6789" in with_contact
    assert "quotation" in without
    assert "reach us" not in without


def test_price_policy_block_framing():
    block = price_policy_block(make_avatar(price_visible=False, contact_info="sales@bloom.example"))
    lines = block.splitlines()

    assert lines[0] == "=== PRICE POLICY (NON-NEGOTIABLE) ==="
    assert lines[-1] == "=== END PRICE POLICY ==="
    assert "sales@bloom.example" in block
