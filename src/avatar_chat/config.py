"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    backend: str = "openai"  # "openai" | "anthropic"
    default_model: str = "gpt-4o-mini"
    temperature: float = 0.7
    history_messages: int = 30
    max_tool_rounds: int = 6
    knowledge_top_k: int = 5
    knowledge_min_similarity: float = 0.7
    knowledge_char_budget: int = 12000
    memory_limit: int = 10
    response_deadline_seconds: float = 20.0
    embedding_model: str = "text-embedding-3-small"
    default_currency: str = "MYR"


class OpenAIConfig(BaseModel):
    base_url: Optional[str] = None
    max_retries: int = 2
    timeout: int = 60


class AnthropicConfig(BaseModel):
    base_url: Optional[str] = None
    max_retries: int = 2
    timeout: int = 60


class StorageConfig(BaseModel):
    db_path: str = "./data/avatar_chat.db"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_logs: bool = False


class AppConfig(BaseModel):
    data_dir: str = "./data"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced as ${data_dir} elsewhere in the file
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = interpolate_env_vars(raw_data.get("data_dir", "./data"))

    interpolated = interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
