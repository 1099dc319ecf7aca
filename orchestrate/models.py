"""
Orchestration Data Models: The Contract of Delegation.

These Pydantic models define what the primary agent may ask for and what it
gets back. AgentDefinition describes *one* subagent. OrchestrationRequest
groups one to three of them. SubagentOutcome records *what happened* inside a
single loop, and AggregatedReport is the only thing the caller ever sees.

Wire names are camelCase (``systemPrompt``, ``maxTurns``...); Python code uses
the snake_case attribute names. Both spellings are accepted on input.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from orchestrate.config import (
    AGENT_ID_PATTERN,
    DEFAULT_MAX_TURNS,
    MAX_CONCURRENT_AGENTS,
    MAX_TURNS_CEILING,
)
from orchestrate.errors import RequestValidationError

_AGENT_ID_RE = re.compile(AGENT_ID_PATTERN)


class AgentDefinition(BaseModel):
    """Task definition for a single subagent. Immutable once accepted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    system_prompt: str = Field(alias="systemPrompt")
    user_prompt: str = Field(alias="userPrompt")
    max_turns: int = Field(
        DEFAULT_MAX_TURNS,
        alias="maxTurns",
        ge=1,
        le=MAX_TURNS_CEILING,
        strict=True,
    )

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        if not _AGENT_ID_RE.fullmatch(value):
            raise ValueError("Use letters, numbers, dot, underscore, or dash.")
        return value

    @field_validator("system_prompt")
    @classmethod
    def _check_system_prompt(cls, value: str) -> str:
        if not value:
            raise ValueError("systemPrompt must not be empty")
        return value

    @field_validator("user_prompt")
    @classmethod
    def _check_user_prompt(cls, value: str) -> str:
        if not value:
            raise ValueError("userPrompt must not be empty")
        return value


class OrchestrationRequest(BaseModel):
    """An ordered group of subagents to run concurrently."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    agents: tuple[AgentDefinition, ...]

    @field_validator("agents")
    @classmethod
    def _check_agents(cls, value: tuple[AgentDefinition, ...]) -> tuple[AgentDefinition, ...]:
        if len(value) < 1:
            raise ValueError("Provide at least one agent definition")
        if len(value) > MAX_CONCURRENT_AGENTS:
            raise ValueError(f"Provide no more than {MAX_CONCURRENT_AGENTS} agents")
        seen: set[str] = set()
        for agent in value:
            if agent.id in seen:
                raise ValueError(f"Agent ids must be unique; '{agent.id}' appears more than once")
            seen.add(agent.id)
        return value


class SubagentOutcome(BaseModel):
    """Final state of one subagent loop. Produced exactly once, never mutated."""

    model_config = ConfigDict(frozen=True)

    agent: AgentDefinition
    turns_completed: int = Field(0, ge=0)
    tool_invocations: int = Field(0, ge=0)
    final_text: str = ""


class SubagentReport(BaseModel):
    """Externally visible record for one subagent."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    system_prompt: str = Field(alias="systemPrompt")
    user_prompt: str = Field(alias="userPrompt")
    max_turns: int = Field(alias="maxTurns")
    turns_taken: int = Field(alias="turnsTaken")
    tool_calls: int = Field(alias="toolCalls")
    summary: str


class AggregatedReport(BaseModel):
    """The orchestration tool's sole output payload, in request order."""

    model_config = ConfigDict(frozen=True)

    subagents: list[SubagentReport] = Field(default_factory=list)


def describe_validation_error(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into one human-readable line per problem."""
    problems: list[str] = []
    for error in exc.errors():
        message = error.get("msg", "Invalid value")
        if error.get("type") == "value_error":
            ctx_error = (error.get("ctx") or {}).get("error")
            if ctx_error is not None:
                message = str(ctx_error)
        location = ".".join(str(part) for part in error.get("loc", ()))
        problems.append(f"{location}: {message}" if location else message)
    return problems


def parse_request(raw: Any) -> OrchestrationRequest:
    """Validate a raw request payload, rejecting it wholesale on any problem."""
    try:
        return OrchestrationRequest.model_validate(raw)
    except ValidationError as exc:
        raise RequestValidationError(describe_validation_error(exc)) from exc
