"""System prompt composition.

``compose_system_prompt`` is pure: the same inputs always give the same text,
so no clock reads or random ids belong in here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from avatar_chat.ai.policy import price_policy_block
from avatar_chat.catalog.accessor import CatalogOverview
from avatar_chat.core.types import Platform
from avatar_chat.storage.models import Avatar, KnowledgeChunk, Memory, PromptVersion

KNOWLEDGE_START = "=== KNOWLEDGE BASE ==="
KNOWLEDGE_END = "=== END KNOWLEDGE BASE ==="
MEMORIES_START = "=== MEMORIES ==="
MEMORIES_END = "=== END MEMORIES ==="

TOOL_RULES = """\
TOOL USAGE RULES:
1. For broad questions about what we sell, call browse_full_catalog first.
2. Use search_products only when the customer names a specific product or SKU.
3. Call list_product_categories before get_products_by_category and pass the exact category name.
4. When the customer asks about promotions, discounts, sales, deals, offers or promo codes (优惠, 折扣, 促销), call get_active_promotions.
5. When the customer gives a promo code, call validate_promo_code to verify it.
6. Never invent products, prices or promotions. Only share what the tools return.

IMAGES:
Tool results contain display_directives such as [IMAGE:https://example.com/item.jpg:Item Name].
Copy a directive on its own line, exactly as given, to show that image. Never write
images as markdown and never invent image links."""


@dataclass(frozen=True)
class PlatformContext:
    platform: Platform = Platform.WEB
    contact_handle: Optional[str] = None

    def describe(self) -> str:
        match self.platform:
            case Platform.WHATSAPP:
                who = f" with {self.contact_handle}" if self.contact_handle else ""
                return (
                    f"PLATFORM: You are chatting on WhatsApp{who}. Keep replies short and "
                    "conversational; WhatsApp shows plain text only."
                )
            case Platform.WEB:
                return "PLATFORM: You are chatting in the website chat widget."
            case Platform.CONSOLE:
                return "PLATFORM: You are chatting in a text console."
            case _:
                return "PLATFORM: You are answering through the API."


def _numbered(items: Sequence[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))


def _identity_sections(avatar: Avatar, version: Optional[PromptVersion]) -> list[str]:
    sections: list[str] = []
    if version is not None:
        sections.append(version.system_prompt)
        if version.personality_traits:
            sections.append(f"Your personality traits: {', '.join(version.personality_traits)}")
        if version.behavior_rules:
            sections.append(f"Behavior guidelines:\n{_numbered(version.behavior_rules)}")
        if version.compliance_rules:
            sections.append(f"Compliance rules (MUST FOLLOW):\n{_numbered(version.compliance_rules)}")
        if version.response_guidelines:
            sections.append(f"Response guidelines:\n{_numbered(version.response_guidelines)}")
        style = version.response_style
        if style is not None:
            lines = [
                f"- {label}: {value}"
                for label, value in (
                    ("Formality", style.formality),
                    ("Tone", style.tone),
                    ("Emoji usage", style.emoji_usage),
                )
                if value
            ]
            if lines:
                sections.append("Response style:\n" + "\n".join(lines))
        return sections

    sections.append(avatar.system_prompt or f"You are {avatar.name}, an AI chatbot.")
    if avatar.business_context:
        sections.append(f"BUSINESS CONTEXT:\n{avatar.business_context}")
    elif avatar.backstory:
        sections.append(f"Your backstory: {avatar.backstory}")
    company = [
        line
        for line in (
            f"Company: {avatar.company_name}" if avatar.company_name else "",
            f"Industry: {avatar.industry}" if avatar.industry else "",
        )
        if line
    ]
    if company:
        sections.append("\n".join(company))
    if avatar.compliance_rules:
        sections.append(f"Compliance rules (MUST FOLLOW):\n{_numbered(avatar.compliance_rules)}")
    if avatar.response_guidelines:
        sections.append(f"Response guidelines:\n{_numbered(avatar.response_guidelines)}")
    if avatar.personality_traits:
        sections.append(f"Your personality traits: {', '.join(avatar.personality_traits)}")
    return sections


def _truncate_at_whitespace(text: str, limit: int) -> str:
    if limit <= 0:
        return ""
    cut = text[:limit]
    boundary = max(cut.rfind(" "), cut.rfind("\n"), cut.rfind("\t"))
    if boundary > 0:
        cut = cut[:boundary]
    return cut.rstrip()


def knowledge_block(chunks: Sequence[KnowledgeChunk], char_budget: int) -> str:
    """Render chunks best-first, dropping whole low-relevance chunks past the budget."""
    if not chunks:
        return ""
    ranked = sorted(chunks, key=lambda c: c.similarity, reverse=True)

    sections: list[str] = []
    used = 0
    for index, chunk in enumerate(ranked, 1):
        header = f"--- Section {index} ---\n"
        section = header + chunk.chunk_text.strip()
        if index == 1 and len(section) > char_budget:
            text = _truncate_at_whitespace(chunk.chunk_text.strip(), char_budget - len(header))
            sections.append(f"{header}{text}\n[section truncated]")
            used = char_budget
            continue
        if used + len(section) > char_budget:
            break
        sections.append(section)
        used += len(section)

    omitted = len(ranked) - len(sections)
    if omitted:
        sections.append(f"[{omitted} lower-relevance section(s) omitted]")
    return "\n".join([KNOWLEDGE_START, "\n\n".join(sections), KNOWLEDGE_END])


def memories_block(memories: Sequence[Memory]) -> str:
    if not memories:
        return ""
    lines = [MEMORIES_START]
    with_photos = False
    for memory in memories:
        when = memory.memory_date.isoformat() if memory.memory_date else "undated"
        summary = " ".join(memory.memory_summary.split())
        line = f"- {memory.title} ({when}): {summary}"
        if memory.image_count:
            with_photos = True
            line += f" [memory_id: {memory.id}, {memory.image_count} photo(s)]"
        lines.append(line)
    if with_photos:
        lines.append(
            "Photos of a memory are only available through the get_memory_images tool, "
            "called with its memory_id. Never write memory photos as markdown images or links."
        )
    lines.append(MEMORIES_END)
    return "\n".join(lines)


def overview_block(overview: Optional[CatalogOverview]) -> str:
    if overview is None or (not overview.categories and not overview.product_count):
        return ""
    lines = ["=== STORE OVERVIEW ==="]
    if overview.categories:
        lines.append(f"Product categories: {', '.join(overview.categories)}")
    lines.append(f"Products listed: {overview.product_count}")
    lines.append(f"Active promotions: {overview.active_promotion_count}")
    lines.append("Use the tools for product details, availability and promotions.")
    lines.append("=== END STORE OVERVIEW ===")
    return "\n".join(lines)


def compose_system_prompt(
    avatar: Avatar,
    prompt_version: Optional[PromptVersion],
    knowledge_chunks: Sequence[KnowledgeChunk],
    memories: Sequence[Memory],
    platform_context: PlatformContext,
    *,
    user_message: str,
    catalog_overview: Optional[CatalogOverview] = None,
    knowledge_char_budget: int = 12000,
) -> str:
    """Assemble the system prompt in its fixed precedence order."""
    sections = _identity_sections(avatar, prompt_version)
    sections += [
        knowledge_block(knowledge_chunks, knowledge_char_budget),
        memories_block(memories),
        overview_block(catalog_overview),
        TOOL_RULES,
    ]
    if not avatar.price_visible:
        sections.append(price_policy_block(avatar))
    sections.append(platform_context.describe())
    sections.append(f'User\'s current question: "{user_message}"')
    return "\n\n".join(s for s in sections if s)
