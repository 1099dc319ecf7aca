# orchestrate/config.py
"""
Configuration for the subagent orchestrator.

Orchestration limits are fixed constants: the request schema is
built from them and they are not meant to vary between deployments. Only the
model connection (credentials, token ceiling, endpoint) is loaded from the
environment (via .env file) and validated with Pydantic.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

# .env lives at the project root, independent of the working directory.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

# Every subagent request goes to this single model.
FIXED_MODEL_ID = "claude-sonnet-4-5-20250929"

# Name the orchestration tool is registered under; never offered to subagents.
ORCHESTRATION_TOOL_NAME = "orchestrate_subagents"

MAX_CONCURRENT_AGENTS = 3
MAX_TURNS_CEILING = 100
DEFAULT_MAX_TURNS = 50
AGENT_ID_PATTERN = r"^[A-Za-z0-9._-]+$"


class ClaudeConfig(BaseSettings):
    """Connection settings for the chat model every subagent talks to."""

    api_key: Optional[str] = Field(None, alias="ANTHROPIC_API_KEY")
    auth_token: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("ANTHROPIC_AUTH_TOKEN", "ORCHESTRATE_AUTH_TOKEN"),
    )
    base_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("ORCHESTRATE_BASE_URL", "ANTHROPIC_BASE_URL"),
    )
    max_tokens: int = Field(8192, alias="ORCHESTRATE_MAX_TOKENS")

    model_config = {"env_file": _ENV_FILE, "extra": "ignore", "populate_by_name": True}

    @model_validator(mode="after")
    def require_auth(self) -> "ClaudeConfig":
        if self.api_key or self.auth_token:
            return self
        raise ValueError(
            "No authentication configured. Set ANTHROPIC_API_KEY or "
            "ANTHROPIC_AUTH_TOKEN/ORCHESTRATE_AUTH_TOKEN."
        )

    @model_validator(mode="after")
    def normalize_limits(self) -> "ClaudeConfig":
        self.max_tokens = max(1, int(self.max_tokens))
        if self.base_url is not None and not self.base_url.strip():
            self.base_url = None
        return self
