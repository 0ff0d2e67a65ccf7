"""Tests for configuration loading."""

from __future__ import annotations

import os

import pytest

from avatar_chat.config import AppConfig, interpolate_env_vars, load_config

CONFIG_YAML = """\
data_dir: /srv/avatar
logging:
  level: DEBUG
engine:
  backend: anthropic
  default_model: claude-3-5-haiku-latest
  max_tool_rounds: 4
storage:
  db_path: ${data_dir}/chat.db
openai:
  base_url: ${AVATAR_CHAT_TEST_BASE_URL}
"""


def test_defaults():
    config = AppConfig()
    assert config.engine.backend == "openai"
    assert config.engine.max_tool_rounds == 6
    assert config.engine.knowledge_min_similarity == 0.7
    assert config.engine.history_messages == 30


def test_load_config_interpolates(tmp_path, monkeypatch):
    monkeypatch.setenv("AVATAR_CHAT_TEST_BASE_URL", "http://localhost:8080/v1")
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")

    config = load_config(path, tmp_path / "missing.env")

    assert config.logging.level == "DEBUG"
    assert config.engine.backend == "anthropic"
    assert config.engine.max_tool_rounds == 4
    assert config.storage.db_path == "/srv/avatar/chat.db"
    assert config.openai.base_url == "http://localhost:8080/v1"


def test_env_file_is_loaded(tmp_path, monkeypatch):
    monkeypatch.delenv("AVATAR_CHAT_TEST_MODEL", raising=False)
    (tmp_path / ".env").write_text("AVATAR_CHAT_TEST_MODEL=gpt-4o\n", encoding="utf-8")
    path = tmp_path / "config.yaml"
    path.write_text("engine:\n  default_model: ${AVATAR_CHAT_TEST_MODEL}\n", encoding="utf-8")

    try:
        config = load_config(path, tmp_path / ".env")
    finally:
        os.environ.pop("AVATAR_CHAT_TEST_MODEL", None)

    assert config.engine.default_model == "gpt-4o"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml", tmp_path / ".env")


def test_unknown_variables_are_left_alone(monkeypatch):
    monkeypatch.delenv("AVATAR_CHAT_UNSET", raising=False)
    assert interpolate_env_vars("key: ${AVATAR_CHAT_UNSET}") == "key: ${AVATAR_CHAT_UNSET}"
    assert interpolate_env_vars("${a}/x", extra={"a": "/data"}) == "/data/x"
