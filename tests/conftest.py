"""
Shared fixtures for the orchestrate test suite.

Provides a scripted ChatModel, an echo tool registry, and small builders so
individual test modules can focus on behavior rather than setup. Every test
is deterministic: the scripted model returns pre-recorded parts, so no
network access is needed.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

import pytest

from orchestrate.api.base import ChatModel
from orchestrate.models import AgentDefinition
from orchestrate.tools.registry import ToolDefinition, ToolRegistry
from orchestrate.types import CancellationToken, TextPart, ToolCallPart

_AGENT_IN_JUSTIFICATION = re.compile(r'agent "([^"]+)"')

Response = Union[list, BaseException]


@dataclass
class RecordedRequest:
    agent_id: Optional[str]
    messages: tuple
    tools: tuple
    justification: str


class ScriptedChatModel(ChatModel):
    """
    A fake ChatModel that replays pre-scripted responses in order.

    ``script`` is either a list of responses (shared by every agent) or a
    dict mapping agent id to its own list. Each response is a list of parts
    or an exception to raise when the stream is consumed. When a script runs
    dry the model answers with plain text and no tool calls.
    """

    model_id = "scripted-model"

    def __init__(
        self,
        script: Union[list[Response], dict[str, list[Response]], None] = None,
        delays: Optional[dict[str, float]] = None,
        count_error: Optional[BaseException] = None,
    ):
        if isinstance(script, dict):
            self._scripts = {key: list(value) for key, value in script.items()}
        else:
            self._scripts = {"*": list(script or [])}
        self._delays = delays or {}
        self._count_error = count_error
        self.requests: list[RecordedRequest] = []

    def requests_for(self, agent_id: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.agent_id == agent_id]

    async def send_request(self, messages, *, tools=(), justification="", cancellation=None):
        match = _AGENT_IN_JUSTIFICATION.search(justification)
        agent_id = match.group(1) if match else None
        self.requests.append(
            RecordedRequest(
                agent_id=agent_id,
                messages=tuple(messages),
                tools=tuple(tools),
                justification=justification,
            )
        )
        delay = self._delays.get(agent_id or "", 0.0)
        if delay:
            await asyncio.sleep(delay)

        queue = self._scripts.get(agent_id or "", self._scripts.get("*", []))
        response: Response = (
            queue.pop(0) if queue else [TextPart(text="[no more scripted responses]")]
        )
        if isinstance(response, BaseException):
            raise response
        for part in response:
            await asyncio.sleep(0)
            yield part

    async def count_tokens(self, message, cancellation=None) -> int:
        if self._count_error is not None:
            raise self._count_error
        return 10


def text(value: str) -> TextPart:
    return TextPart(text=value)


def call(name: str = "echo", call_id: str = "call_1", /, **arguments: Any) -> ToolCallPart:
    return ToolCallPart(call_id=call_id, name=name, input=arguments or {"text": "ping"})


def make_agent(agent_id: str = "a", max_turns: int = 50, **overrides: Any) -> AgentDefinition:
    data = {
        "id": agent_id,
        "systemPrompt": "S",
        "userPrompt": "U",
        "maxTurns": max_turns,
    }
    data.update(overrides)
    return AgentDefinition.model_validate(data)


def make_registry() -> ToolRegistry:
    """A ToolRegistry with a simple echo tool for testing."""
    registry = ToolRegistry()
    registry.register(ToolDefinition(
        name="echo",
        description="Echoes the input back",
        input_schema={
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
        handler=lambda text="": f"echo: {text}",
        category="test",
    ))
    return registry


@pytest.fixture()
def registry() -> ToolRegistry:
    return make_registry()


@pytest.fixture()
def cancellation() -> CancellationToken:
    return CancellationToken()
