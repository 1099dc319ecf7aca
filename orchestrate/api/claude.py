"""
Claude API Client: the chat model behind every subagent.

This module wraps the Anthropic SDK behind the ChatModel contract. Responses
are consumed with the streaming Messages API and surfaced as typed parts as
each content block completes, so a subagent sees text and tool calls in the
exact order the model produced them.

It also resolves the single fixed model selector. Resolution happens once per
orchestration, before any subagent starts; if the model is missing or access
is refused the whole operation fails with ModelUnavailableError.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Sequence
from typing import Any, Optional

import anthropic
import structlog

from orchestrate.api.base import ChatModel
from orchestrate.config import FIXED_MODEL_ID, ClaudeConfig
from orchestrate.errors import CancellationError, ModelUnavailableError
from orchestrate.types import (
    AssistantMessage,
    AssistantPart,
    CancellationToken,
    ConversationMessage,
    TextPart,
    ToolCallPart,
    ToolResultMessage,
    UserMessage,
)

logger = structlog.get_logger(__name__)


def build_client(config: ClaudeConfig) -> anthropic.AsyncAnthropic:
    """Create the async Anthropic client, preferring an API key over a token."""
    kwargs: dict[str, Any] = {}
    if config.api_key:
        kwargs["api_key"] = config.api_key
    else:
        kwargs["auth_token"] = config.auth_token
    if config.base_url:
        kwargs["base_url"] = config.base_url
    return anthropic.AsyncAnthropic(**kwargs)


def _segment_to_block(segment: Any) -> dict[str, Any]:
    """Convert one opaque tool result segment into an API content block."""
    if isinstance(segment, str):
        return {"type": "text", "text": segment}
    if isinstance(segment, dict) and "type" in segment:
        return segment
    try:
        text = json.dumps(segment, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        text = str(segment)
    return {"type": "text", "text": text}


def to_api_messages(messages: Sequence[ConversationMessage]) -> list[dict[str, Any]]:
    """
    Convert a transcript into the Messages API shape.

    Consecutive tool results are merged into one user turn, because every
    tool_result for an assistant turn must arrive in the very next message.
    """
    api_messages: list[dict[str, Any]] = []
    for message in messages:
        if isinstance(message, UserMessage):
            api_messages.append({"role": "user", "content": message.text})
        elif isinstance(message, AssistantMessage):
            content: list[dict[str, Any]] = []
            for part in message.parts:
                if isinstance(part, TextPart):
                    # The API rejects empty and whitespace-only text blocks.
                    if part.text.strip():
                        content.append({"type": "text", "text": part.text})
                elif isinstance(part, ToolCallPart):
                    content.append({
                        "type": "tool_use",
                        "id": part.call_id,
                        "name": part.name,
                        "input": part.input if part.input is not None else {},
                    })
                else:
                    raise TypeError(f"Unknown assistant part: {part!r}")
            if content:
                api_messages.append({"role": "assistant", "content": content})
        elif isinstance(message, ToolResultMessage):
            block = {
                "type": "tool_result",
                "tool_use_id": message.call_id,
                "content": [_segment_to_block(s) for s in message.content],
            }
            previous = api_messages[-1] if api_messages else None
            if (
                previous is not None
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].append(block)
            else:
                api_messages.append({"role": "user", "content": [block]})
        else:
            raise TypeError(f"Unknown conversation message: {message!r}")
    return api_messages


def _referenced_tool_names(messages: Sequence[ConversationMessage]) -> list[str]:
    names: list[str] = []
    for message in messages:
        if isinstance(message, AssistantMessage):
            for call in message.tool_calls:
                if call.name not in names:
                    names.append(call.name)
    return names


def _estimation_text(message: ConversationMessage) -> str:
    if isinstance(message, UserMessage):
        return message.text
    if isinstance(message, AssistantMessage):
        chunks = []
        for part in message.parts:
            if isinstance(part, TextPart):
                chunks.append(part.text)
            else:
                chunks.append(json.dumps({"tool": part.name, "input": part.input}, default=str))
        return "\n".join(chunks)
    return "\n".join(
        s if isinstance(s, str) else json.dumps(s, default=str) for s in message.content
    )


async def _pull(events: AsyncIterator[Any]) -> Any:
    try:
        return await events.__anext__()
    except StopAsyncIteration:
        return None


async def _next_event(events: AsyncIterator[Any], cancellation: Optional[CancellationToken]) -> Any:
    """
    Next stream event, or None at the end of the stream.

    With a token, waiting for the event races the cancellation signal and a
    cancellation wins by raising CancellationError. Events already received
    are never dropped.
    """
    if cancellation is None:
        return await _pull(events)
    cancellation.raise_if_cancelled()

    pending = asyncio.ensure_future(_pull(events))
    cancelled = asyncio.ensure_future(cancellation.wait())
    try:
        await asyncio.wait({pending, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (pending, cancelled):
            if not task.done():
                task.cancel()

    if pending.done() and not pending.cancelled():
        return pending.result()
    logger.info("claude.stream_cancelled")
    raise CancellationError()


class AnthropicChatModel(ChatModel):
    """
    ChatModel backed by the Anthropic Messages API.

    Holds no per-request state, so one instance is shared by every subagent
    in an orchestration.
    """

    def __init__(
        self,
        config: ClaudeConfig,
        model_id: str = FIXED_MODEL_ID,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self.model_id = model_id
        self._max_tokens = config.max_tokens
        self._client = client if client is not None else build_client(config)

    async def send_request(
        self,
        messages: Sequence[ConversationMessage],
        *,
        tools: Sequence[dict[str, Any]] = (),
        justification: str = "",
        cancellation: Optional[CancellationToken] = None,
    ) -> AsyncIterator[AssistantPart]:
        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "max_tokens": self._max_tokens,
            "messages": to_api_messages(messages),
        }
        if tools:
            kwargs["tools"] = list(tools)
        else:
            referenced = _referenced_tool_names(messages)
            if referenced:
                # A transcript holding tool_use blocks must declare those tools;
                # tool_choice "none" keeps them from being offered.
                kwargs["tools"] = [
                    {
                        "name": name,
                        "description": "Unavailable for this request.",
                        "input_schema": {"type": "object"},
                    }
                    for name in referenced
                ]
                kwargs["tool_choice"] = {"type": "none"}

        logger.debug(
            "claude.send_request",
            model=self.model_id,
            message_count=len(kwargs["messages"]),
            tool_count=len(tools),
            justification=justification,
        )

        try:
            async with self._client.messages.stream(**kwargs) as stream:
                events = stream.__aiter__()
                while True:
                    event = await _next_event(events, cancellation)
                    if event is None:
                        break
                    if event.type != "content_block_stop":
                        continue
                    block = event.content_block
                    if block.type == "text":
                        yield TextPart(text=block.text)
                    elif block.type == "tool_use":
                        yield ToolCallPart(call_id=block.id, name=block.name, input=block.input)
        except anthropic.APIConnectionError as e:
            logger.error("claude.connection_error", error=str(e))
            raise
        except anthropic.RateLimitError as e:
            logger.warning("claude.rate_limited", error=str(e))
            raise
        except anthropic.APIError as e:
            logger.error(
                "claude.api_error",
                error=str(e),
                status=getattr(e, "status_code", None),
            )
            raise

    async def count_tokens(
        self,
        message: ConversationMessage,
        cancellation: Optional[CancellationToken] = None,
    ) -> int:
        text = _estimation_text(message)
        if not text:
            return 0
        response = await self._client.messages.count_tokens(
            model=self.model_id,
            messages=[{"role": "user", "content": text}],
        )
        return response.input_tokens


async def resolve_model(
    config: ClaudeConfig,
    client: Optional[anthropic.AsyncAnthropic] = None,
) -> AnthropicChatModel:
    """Resolve the fixed model selector, failing before any subagent starts."""
    client = client if client is not None else build_client(config)
    try:
        info = await client.models.retrieve(FIXED_MODEL_ID)
    except anthropic.NotFoundError as exc:
        raise ModelUnavailableError(
            f'Required chat model "{FIXED_MODEL_ID}" is unavailable. '
            "Ensure it is enabled for your account."
        ) from exc
    except (anthropic.PermissionDeniedError, anthropic.AuthenticationError) as exc:
        raise ModelUnavailableError(
            "Language model access denied for the selected model. "
            "Check the configured API credentials."
        ) from exc
    except anthropic.APIConnectionError as exc:
        raise ModelUnavailableError(
            f'Required chat model "{FIXED_MODEL_ID}" could not be reached: {exc}'
        ) from exc
    except anthropic.APIError as exc:
        logger.error(
            "claude.model_resolution_failed",
            error=str(exc),
            status=getattr(exc, "status_code", None),
        )
        raise ModelUnavailableError(
            f'Required chat model "{FIXED_MODEL_ID}" could not be resolved: {exc}'
        ) from exc

    logger.info("claude.model_resolved", model=info.id)
    return AnthropicChatModel(config, model_id=info.id, client=client)
