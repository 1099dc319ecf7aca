"""
Core data types shared across orchestration subsystems.

Transcript messages and response parts form a closed tagged union: every
class carries a ``kind`` discriminator, and anything that consumes a
transcript matches on it exhaustively. They live here rather than in a
specific subsystem to avoid circular imports between the loop, the model
adapter, and the tool dispatcher.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from orchestrate.errors import CancellationError


@dataclass(frozen=True)
class TextPart:
    """A chunk of assistant text, in emission order."""

    text: str
    kind: Literal["text"] = "text"


@dataclass(frozen=True)
class ToolCallPart:
    """A request from the model to invoke a tool.

    ``call_id`` is opaque and unique within one transcript; the matching
    ToolResultMessage echoes it back.
    """

    call_id: str
    name: str
    input: Any = field(default_factory=dict)
    kind: Literal["tool_call"] = "tool_call"


AssistantPart = Union[TextPart, ToolCallPart]


@dataclass(frozen=True)
class ToolResult:
    """Normalized tool output: an ordered tuple of opaque segments."""

    content: tuple[Any, ...] = ()


@dataclass(frozen=True)
class UserMessage:
    text: str
    kind: Literal["user"] = "user"


@dataclass(frozen=True)
class AssistantMessage:
    parts: tuple[AssistantPart, ...]
    kind: Literal["assistant"] = "assistant"

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]


@dataclass(frozen=True)
class ToolResultMessage:
    """The result of one tool call, tied to it by ``call_id``."""

    call_id: str
    content: tuple[Any, ...]
    kind: Literal["tool_result"] = "tool_result"


ConversationMessage = Union[UserMessage, AssistantMessage, ToolResultMessage]


class CancellationToken:
    """Broadcast, many-reader cancellation flag shared by every subagent.

    Cancellation is cooperative: holders check it at their suspension points
    (before a model request, before a tool dispatch) and abort by raising
    CancellationError.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError()
