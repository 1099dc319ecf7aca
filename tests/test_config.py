"""Tests for orchestrate.config.ClaudeConfig: environment-driven settings."""

from __future__ import annotations

import pytest

from orchestrate.config import ClaudeConfig

_AUTH_VARS = (
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_AUTH_TOKEN",
    "ORCHESTRATE_AUTH_TOKEN",
    "ORCHESTRATE_BASE_URL",
    "ANTHROPIC_BASE_URL",
    "ORCHESTRATE_MAX_TOKENS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _AUTH_VARS:
        monkeypatch.delenv(name, raising=False)


def test_requires_some_credential():
    with pytest.raises(ValueError, match="No authentication configured"):
        ClaudeConfig(_env_file=None)


def test_api_key_from_environment(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
    config = ClaudeConfig(_env_file=None)
    assert config.api_key == "sk-env"
    assert config.max_tokens == 8192
    assert config.base_url is None


def test_auth_token_alias(monkeypatch):
    monkeypatch.setenv("ORCHESTRATE_AUTH_TOKEN", "tok")
    assert ClaudeConfig(_env_file=None).auth_token == "tok"


def test_blank_base_url_is_ignored(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
    monkeypatch.setenv("ORCHESTRATE_BASE_URL", "   ")
    assert ClaudeConfig(_env_file=None).base_url is None


def test_max_tokens_is_at_least_one(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
    monkeypatch.setenv("ORCHESTRATE_MAX_TOKENS", "0")
    assert ClaudeConfig(_env_file=None).max_tokens == 1


def test_reads_dotenv_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("ANTHROPIC_API_KEY=sk-file\nORCHESTRATE_MAX_TOKENS=2048\n")
    config = ClaudeConfig(_env_file=env_file)
    assert config.api_key == "sk-file"
    assert config.max_tokens == 2048
