"""
The Subagent Loop: one delegated task, driven to completion.

The pattern is the classic tool-use loop, bounded by a turn budget:

    transcript = [initial_prompt]
    for turn in range(max_turns):
        parts = model.send_request(transcript, tools)
        transcript.append(assistant(parts))
        if no tool calls in parts:
            break
        for call in tool calls:
            transcript.append(tool_result(dispatch(call)))
    else:
        transcript.append(summary_prompt)
        parts = model.send_request(transcript, tools=())

Every subagent owns its loop instance outright: transcript, counters and the
accumulated text are never shared, so several loops can run side by side on
one event loop without locks. The only shared objects (model, catalogue,
dispatcher, cancellation token) are read-only.

Any model or tool failure aborts the run. The one exception is the final
summary request after the turn budget runs out, whose failure is logged and
swallowed.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Any, Optional

import structlog

from orchestrate.api.base import ChatModel
from orchestrate.errors import (
    CancellationError,
    ModelRequestError,
    ToolDispatchError,
    ToolInvocationError,
)
from orchestrate.models import AgentDefinition, SubagentOutcome
from orchestrate.prompts import compose_initial_prompt, compose_summary_prompt
from orchestrate.tools.dispatcher import ToolDispatcher
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


class LoopState(str, Enum):
    RUNNING = "running"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    SUMMARIZING = "summarizing"
    DONE = "done"


def append_text(accumulated: str, chunk: str) -> str:
    """Join a new text chunk onto the running output with a blank line."""
    return f"{accumulated}\n\n{chunk}".strip()


class SubagentLoop:
    """
    Drives one subagent through its bounded sequence of turns.

    A loop instance is single-use: ``run()`` may be awaited once and yields
    the SubagentOutcome. The transcript stays readable afterwards for
    diagnostics and tests.
    """

    def __init__(
        self,
        agent: AgentDefinition,
        model: ChatModel,
        dispatcher: ToolDispatcher,
        tools: Sequence[dict[str, Any]],
        cancellation: CancellationToken,
        log: Optional[Any] = None,
    ):
        self._agent = agent
        self._model = model
        self._dispatcher = dispatcher
        self._tools = tuple(tools)
        self._cancellation = cancellation
        self._log = (log if log is not None else logger).bind(agent_id=agent.id)

        self._transcript: list[ConversationMessage] = []
        self._turns = 0
        self._tool_invocations = 0
        self._accumulated_text = ""
        self._started = False
        self.state = LoopState.RUNNING

    @property
    def transcript(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._transcript)

    async def run(self) -> SubagentOutcome:
        """Run the subagent to completion and return its outcome."""
        if self._started:
            raise RuntimeError(f"Subagent loop for '{self._agent.id}' has already run")
        self._started = True

        agent = self._agent
        self._log.info("subagent_loop.start", max_turns=agent.max_turns, tool_count=len(self._tools))

        initial = UserMessage(
            text=compose_initial_prompt(agent.id, agent.system_prompt, agent.user_prompt)
        )
        tokens = await self._estimate_tokens(initial)
        if tokens is not None:
            self._log.debug("subagent_loop.initial_prompt_tokens", tokens=tokens)
        self._transcript.append(initial)

        exhausted_budget = True
        for turn in range(agent.max_turns):
            self.state = LoopState.RUNNING
            self._cancellation.raise_if_cancelled()

            prompt_tokens = await self._estimate_conversation_tokens()
            self._log.info(
                "subagent_loop.turn_sent",
                turn=turn + 1,
                approx_tokens=prompt_tokens,
                message_count=len(self._transcript),
            )
            parts = await self._request_turn(turn + 1)

            text_chunks: list[str] = []
            tool_calls: list[ToolCallPart] = []
            for part in parts:
                if isinstance(part, TextPart):
                    text_chunks.append(part.text)
                elif isinstance(part, ToolCallPart):
                    tool_calls.append(part)
                else:
                    raise TypeError(f"Unknown response part: {part!r}")

            if parts:
                self._transcript.append(AssistantMessage(parts=tuple(parts)))
                self._turns += 1

            turn_text = "".join(text_chunks)
            if turn_text.strip():
                self._log.debug(
                    "subagent_loop.turn_text", turn=self._turns, chars=len(turn_text.strip())
                )
                self._accumulated_text = append_text(self._accumulated_text, turn_text)

            if not tool_calls:
                self._log.info("subagent_loop.turn_complete_without_tools", turn=self._turns)
                exhausted_budget = False
                break

            self._log.info(
                "subagent_loop.tool_calls_requested", turn=self._turns, count=len(tool_calls)
            )
            self.state = LoopState.AWAITING_TOOL_RESULTS
            for call in tool_calls:
                await self._dispatch(call)

        if exhausted_budget:
            await self._summarize()

        self.state = LoopState.DONE
        self._log.info(
            "subagent_loop.finished",
            turns=self._turns,
            tool_calls=self._tool_invocations,
            exhausted_budget=exhausted_budget,
        )
        return SubagentOutcome(
            agent=agent,
            turns_completed=self._turns,
            tool_invocations=self._tool_invocations,
            final_text=self._accumulated_text,
        )

    # ---- Internal Methods ----

    async def _collect(self, tools: Sequence[dict[str, Any]], justification: str) -> list[AssistantPart]:
        """Issue one request and drain its stream, keeping every part in order."""
        stream = self._model.send_request(
            tuple(self._transcript),
            tools=tools,
            justification=justification,
            cancellation=self._cancellation,
        )
        return [part async for part in stream]

    async def _request_turn(self, turn: int) -> list[AssistantPart]:
        try:
            return await self._collect(
                self._tools,
                f'Orchestrate Subagents tool executing agent "{self._agent.id}".',
            )
        except CancellationError:
            self._log.info("subagent_loop.turn_cancelled", turn=turn)
            raise
        except Exception as exc:
            self._log.error("subagent_loop.turn_failed", turn=turn, error=str(exc))
            raise ModelRequestError(self._agent.id, str(exc)) from exc

    async def _dispatch(self, call: ToolCallPart) -> None:
        self._cancellation.raise_if_cancelled()
        self._log.info("subagent_loop.tool_invoking", tool=call.name, call_id=call.call_id)

        try:
            result = await self._dispatcher.invoke(call.name, call.input, self._cancellation)
        except (CancellationError, ToolDispatchError) as exc:
            self._log.error("subagent_loop.tool_failed", tool=call.name, error=str(exc))
            raise
        except Exception as exc:
            self._log.error("subagent_loop.tool_failed", tool=call.name, error=str(exc))
            raise ToolInvocationError(call.name, f"Tool '{call.name}' failed: {exc}") from exc

        message = ToolResultMessage(call_id=call.call_id, content=result.content)
        tokens = await self._estimate_tokens(message)
        self._log.info(
            "subagent_loop.tool_completed",
            tool=call.name,
            parts=len(result.content),
            approx_tokens=tokens,
        )
        self._transcript.append(message)
        self._tool_invocations += 1

    async def _summarize(self) -> None:
        """Ask for a tool-free summary once the turn budget is spent."""
        self.state = LoopState.SUMMARIZING
        self._log.warning(
            "subagent_loop.budget_exhausted", turns=self._turns, tool_calls=self._tool_invocations
        )
        self._transcript.append(UserMessage(text=compose_summary_prompt()))

        try:
            self._cancellation.raise_if_cancelled()
            parts = await self._collect(
                (),
                f'Orchestrate Subagents tool executing final summary for agent "{self._agent.id}".',
            )
            summary_parts: list[TextPart] = []
            for part in parts:
                if isinstance(part, TextPart):
                    summary_parts.append(part)
                elif isinstance(part, ToolCallPart):
                    self._log.warning("subagent_loop.summary_tool_call_ignored", tool=part.name)
                else:
                    raise TypeError(f"Unknown response part: {part!r}")

            if summary_parts:
                self._transcript.append(AssistantMessage(parts=tuple(summary_parts)))
                combined = "".join(p.text for p in summary_parts)
                if combined.strip():
                    self._accumulated_text = append_text(self._accumulated_text, combined)
                    self._log.info("subagent_loop.summary_produced", chars=len(combined.strip()))
        except Exception as exc:
            self._log.warning("subagent_loop.summary_failed", error=str(exc))

    async def _estimate_tokens(self, message: ConversationMessage) -> Optional[int]:
        """Token estimate for diagnostics only; failures never alter control flow."""
        try:
            return await self._model.count_tokens(message, self._cancellation)
        except Exception as exc:
            self._log.debug("subagent_loop.token_estimate_failed", error=str(exc))
            return None

    async def _estimate_conversation_tokens(self) -> int:
        total = 0
        for message in self._transcript:
            tokens = await self._estimate_tokens(message)
            if tokens is None:
                break
            total += tokens
        return total
