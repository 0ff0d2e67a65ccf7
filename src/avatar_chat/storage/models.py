"""Data models for the storage layer.

Rows are converted to these models at the repository boundary, so everything
past a repository works with validated, typed records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _is_date_only(value: Any) -> bool:
    if isinstance(value, date) and not isinstance(value, datetime):
        return True
    return isinstance(value, str) and len(value.strip()) == 10


def _json_list(value: Any) -> Any:
    """SQLite stores list columns as JSON text."""
    if value is None:
        return []
    if isinstance(value, str):
        return json.loads(value) if value.strip() else []
    return value


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ResponseStyle(_Record):
    formality: Optional[str] = None
    tone: Optional[str] = None
    emoji_usage: Optional[str] = None


class Avatar(_Record):
    id: str
    user_id: str
    name: str = Field(min_length=1)
    system_prompt: Optional[str] = None
    business_context: Optional[str] = None
    backstory: Optional[str] = None
    company_name: Optional[str] = None
    industry: Optional[str] = None
    compliance_rules: list[str] = Field(default_factory=list)
    response_guidelines: list[str] = Field(default_factory=list)
    personality_traits: list[str] = Field(default_factory=list)
    price_visible: bool = True
    contact_info: Optional[str] = None
    base_model: Optional[str] = None
    active_fine_tuned_model: Optional[str] = None
    use_fine_tuned_model: bool = False

    parse_lists = field_validator(
        "compliance_rules", "response_guidelines", "personality_traits", mode="before"
    )(_json_list)

    @property
    def fine_tuned_model(self) -> Optional[str]:
        """The fine-tuned model id when the owner has switched it on."""
        if self.use_fine_tuned_model and self.active_fine_tuned_model:
            return self.active_fine_tuned_model
        return None


class PromptVersion(_Record):
    id: str
    avatar_id: str
    version_number: int = 1
    system_prompt: str = Field(min_length=1)
    personality_traits: list[str] = Field(default_factory=list)
    behavior_rules: list[str] = Field(default_factory=list)
    compliance_rules: list[str] = Field(default_factory=list)
    response_guidelines: list[str] = Field(default_factory=list)
    response_style: Optional[ResponseStyle] = None
    is_active: bool = False
    parent_version_id: Optional[str] = None
    usage_count: int = 0
    created_at: Optional[datetime] = None

    parse_lists = field_validator(
        "personality_traits", "behavior_rules", "compliance_rules", "response_guidelines",
        mode="before",
    )(_json_list)

    @field_validator("response_style", mode="before")
    @classmethod
    def _parse_style(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value) if value.strip() else None
        return value


class Product(_Record):
    id: str
    chatbot_id: str
    sku: str
    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    currency: str = "MYR"
    category: Optional[str] = None
    in_stock: bool = True
    stock_quantity: Optional[int] = None
    images: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    parse_lists = field_validator("images", "tags", mode="before")(_json_list)

    @property
    def image_url(self) -> Optional[str]:
        return self.images[0] if self.images else None


DiscountType = Literal["percentage", "fixed_amount"]
PromotionScope = Literal["all", "category", "products"]


class Promotion(_Record):
    id: str
    chatbot_id: str
    title: str
    description: Optional[str] = None
    promo_code: Optional[str] = None
    discount_type: DiscountType = "percentage"
    discount_value: float = Field(default=0, ge=0)
    max_discount: Optional[float] = None
    min_purchase: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True
    current_uses: int = 0
    max_uses: Optional[int] = None
    applies_to: PromotionScope = "all"
    applies_to_categories: list[str] = Field(default_factory=list)
    applies_to_product_ids: list[str] = Field(default_factory=list)
    terms_and_conditions: Optional[str] = None
    banner_image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    parse_lists = field_validator(
        "applies_to_categories", "applies_to_product_ids", mode="before"
    )(_json_list)

    @field_validator("discount_type", mode="before")
    @classmethod
    def _normalise_discount_type(cls, value: Any) -> Any:
        if value in ("fixed", "amount"):
            return "fixed_amount"
        return value or "percentage"

    @field_validator("applies_to", mode="before")
    @classmethod
    def _default_scope(cls, value: Any) -> Any:
        return value or "all"

    @field_validator("start_date", mode="before")
    @classmethod
    def _start_of_day(cls, value: Any) -> Any:
        if value and _is_date_only(value):
            day = value if isinstance(value, date) else date.fromisoformat(value.strip())
            return datetime.combine(day, time.min, tzinfo=timezone.utc)
        return value

    @field_validator("end_date", mode="before")
    @classmethod
    def _end_of_day(cls, value: Any) -> Any:
        # a date-only end date covers the whole day
        if value and _is_date_only(value):
            day = value if isinstance(value, date) else date.fromisoformat(value.strip())
            return datetime.combine(day, time.max, tzinfo=timezone.utc)
        return value

    @field_validator("start_date", "end_date", "created_at", mode="after")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_discount(self) -> Promotion:
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("percentage discount cannot exceed 100")
        return self


class Memory(_Record):
    id: str
    avatar_id: str
    user_id: str
    title: str
    memory_date: Optional[date] = None
    memory_summary: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    is_private: bool = False
    image_count: int = 0

    @field_validator("details", mode="before")
    @classmethod
    def _parse_details(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value


class MemoryImage(_Record):
    id: str
    memory_id: str
    image_url: str
    caption: str = ""
    is_primary: bool = False


class KnowledgeChunk(_Record):
    id: str
    avatar_id: str
    chunk_text: str
    similarity: float = 0.0
    section_title: Optional[str] = None
    page_number: Optional[int] = None


@dataclass
class ConversationRecord:
    avatar_id: str
    session_id: str
    contact: str
    platform: str
    role: str  # "user" | "assistant"
    content: str
    model: str = ""
    token_input: int = 0
    token_output: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None
