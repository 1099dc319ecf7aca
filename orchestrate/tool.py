"""
The orchestration tool: what the primary agent actually calls.

One invocation validates the request, resolves the fixed chat model, takes a
snapshot of the tool catalogue (without this tool in it), fans the subagents
out, and returns the aggregated report as a single text segment.

Invalid input is answered with a field-by-field error report instead of an
exception, so the primary agent can correct its arguments and retry. Model
and subagent failures propagate to the caller.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable
from typing import Any, Callable, Optional

import structlog

from orchestrate.api.base import ChatModel
from orchestrate.config import (
    AGENT_ID_PATTERN,
    DEFAULT_MAX_TURNS,
    MAX_CONCURRENT_AGENTS,
    MAX_TURNS_CEILING,
    ORCHESTRATION_TOOL_NAME,
)
from orchestrate.errors import RequestValidationError
from orchestrate.models import parse_request
from orchestrate.orchestrator import Orchestrator
from orchestrate.report import build_report, render_report
from orchestrate.tools.dispatcher import ToolDispatcher
from orchestrate.tools.registry import ToolDefinition, ToolRegistry
from orchestrate.types import CancellationToken, ToolResult

logger = structlog.get_logger(__name__)

ModelResolver = Callable[[], Awaitable[ChatModel]]

TOOL_DESCRIPTION = (
    "Delegate focused tasks to up to three independent subagents that run in "
    "parallel. Each subagent gets its own system prompt, task, and turn budget, "
    "may call the other available tools, and reports back a summary. Use this "
    "to keep long research or multi-step investigations out of the main "
    "conversation."
)

REQUEST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "agents": {
            "type": "array",
            "minItems": 1,
            "maxItems": MAX_CONCURRENT_AGENTS,
            "items": {
                "type": "object",
                "properties": {
                    "id": {
                        "type": "string",
                        "pattern": AGENT_ID_PATTERN,
                        "description": "Unique identifier for this subagent.",
                    },
                    "systemPrompt": {
                        "type": "string",
                        "minLength": 1,
                        "description": "Instructions defining the subagent's role and rules.",
                    },
                    "userPrompt": {
                        "type": "string",
                        "minLength": 1,
                        "description": "The task the subagent should complete.",
                    },
                    "maxTurns": {
                        "type": "integer",
                        "minimum": 1,
                        "maximum": MAX_TURNS_CEILING,
                        "default": DEFAULT_MAX_TURNS,
                        "description": "Turn budget before a forced summary.",
                    },
                },
                "required": ["id", "systemPrompt", "userPrompt"],
            },
        },
    },
    "required": ["agents"],
}


class OrchestrateSubagentsTool:
    """Entry point that turns one tool call into a concurrent subagent run."""

    name = ORCHESTRATION_TOOL_NAME

    def __init__(self, registry: ToolRegistry, resolve_model: ModelResolver):
        self._registry = registry
        self._resolve_model = resolve_model

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=TOOL_DESCRIPTION,
            input_schema=REQUEST_SCHEMA,
            handler=self,
            category="orchestration",
        )

    def register(self) -> None:
        """Expose this tool through the same registry its subagents draw from."""
        self._registry.register(self.definition())

    def prepare_invocation(self, raw_input: Any) -> str:
        """Short user-facing message shown before the invocation runs."""
        try:
            request = parse_request(raw_input)
        except RequestValidationError:
            return "Orchestrate Subagents: input looks invalid. Review arguments before continuing."
        count = len(request.agents)
        return f"Launching {count} subagent{'s' if count > 1 else ''}."

    async def invoke(
        self,
        raw_input: Any,
        cancellation: Optional[CancellationToken] = None,
    ) -> ToolResult:
        """Run the request and return the JSON report as a single text segment."""
        log = logger.bind(invocation_id=uuid.uuid4().hex[:12])
        try:
            request = parse_request(raw_input)
        except RequestValidationError as exc:
            log.warning("orchestrate_tool.invalid_request", problems=exc.problems)
            return ToolResult(content=(str(exc),))

        cancellation = cancellation if cancellation is not None else CancellationToken()
        model = await self._resolve_model()
        tools = self._registry.catalogue(exclude={self.name})

        log.info(
            "orchestrate_tool.starting",
            agents=[agent.id for agent in request.agents],
            model=getattr(model, "model_id", ""),
        )
        orchestrator = Orchestrator(
            model=model,
            dispatcher=ToolDispatcher(self._registry),
            tools=tools,
            log=log,
        )
        outcomes = await orchestrator.fan_out(request, cancellation)
        payload = render_report(build_report(outcomes))
        log.info("orchestrate_tool.completed", agents=len(outcomes))
        return ToolResult(content=(payload,))

    async def __call__(self, **arguments: Any) -> ToolResult:
        return await self.invoke(arguments)
