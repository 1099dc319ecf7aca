"""
Chat model boundary.

The orchestrator never talks to a provider SDK directly. Everything it needs
from a language model fits in two operations: send a transcript and stream
back typed parts, and estimate how many tokens a message costs. A resolved
ChatModel is shared read-only by every subagent, so implementations must be
safe for concurrent use (every call is an independent request).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any, Optional

from orchestrate.types import AssistantPart, CancellationToken, ConversationMessage


class ChatModel(ABC):
    """Abstract contract for the chat model every subagent talks to."""

    model_id: str = ""

    @abstractmethod
    def send_request(
        self,
        messages: Sequence[ConversationMessage],
        *,
        tools: Sequence[dict[str, Any]] = (),
        justification: str = "",
        cancellation: Optional[CancellationToken] = None,
    ) -> AsyncIterator[AssistantPart]:
        """Issue one request and return a lazy, finite stream of response parts.

        An empty ``tools`` sequence means no tools are offered for this request.
        Setting ``cancellation`` ends the stream with CancellationError; parts
        already yielded stay with the caller.
        """

    @abstractmethod
    async def count_tokens(
        self,
        message: ConversationMessage,
        cancellation: Optional[CancellationToken] = None,
    ) -> int:
        """Best-effort token estimate for a single message."""
