"""
Orchestrator: concurrent fan-out of subagent loops.

Launches one SubagentLoop per agent definition as an asyncio.Task, all sharing
one cancellation token, and waits for them. Results come back in request
order, never completion order.

The failure policy is all-or-nothing: if any subagent fails (model error,
tool dispatch error, cancellation) the remaining subagents are cancelled and
the first failure propagates. There is no partial report.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Any, Optional

import structlog

from orchestrate.api.base import ChatModel
from orchestrate.config import MAX_CONCURRENT_AGENTS
from orchestrate.harness.loop import SubagentLoop
from orchestrate.models import AgentDefinition, OrchestrationRequest, SubagentOutcome
from orchestrate.tools.dispatcher import ToolDispatcher
from orchestrate.types import CancellationToken

logger = structlog.get_logger(__name__)


class Orchestrator:
    """Runs the subagents of one request side by side."""

    def __init__(
        self,
        model: ChatModel,
        dispatcher: ToolDispatcher,
        tools: Sequence[dict[str, Any]],
        log: Optional[Any] = None,
    ):
        self._model = model
        self._dispatcher = dispatcher
        self._tools = tuple(tools)
        self._log = log if log is not None else logger

    def build_loop(self, agent: AgentDefinition, cancellation: CancellationToken) -> SubagentLoop:
        return SubagentLoop(
            agent=agent,
            model=self._model,
            dispatcher=self._dispatcher,
            tools=self._tools,
            cancellation=cancellation,
            log=self._log,
        )

    async def fan_out(
        self,
        request: OrchestrationRequest,
        cancellation: CancellationToken,
    ) -> list[SubagentOutcome]:
        """Run every agent in ``request`` concurrently; outcomes in request order."""
        agents = request.agents
        if len(agents) > MAX_CONCURRENT_AGENTS:
            raise ValueError(
                f"At most {MAX_CONCURRENT_AGENTS} subagents may run at once, got {len(agents)}"
            )

        start = time.monotonic()
        self._log.info(
            "orchestrator.fan_out_start",
            agents=[agent.id for agent in agents],
            tool_count=len(self._tools),
        )

        tasks = [
            asyncio.create_task(
                self.build_loop(agent, cancellation).run(),
                name=f"subagent:{agent.id}",
            )
            for agent in agents
        ]
        try:
            outcomes = await asyncio.gather(*tasks)
        except BaseException as exc:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            self._log.error(
                "orchestrator.fan_out_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                cancelled_siblings=len(pending),
            )
            raise

        self._log.info(
            "orchestrator.fan_out_complete",
            agents=len(outcomes),
            elapsed=round(time.monotonic() - start, 2),
        )
        return list(outcomes)
