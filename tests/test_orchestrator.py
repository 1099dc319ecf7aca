"""
Tests for orchestrate.orchestrator: concurrent fan-out of subagent loops.

Covers request-order results regardless of completion order, true
concurrency between subagents, the all-or-nothing failure policy (siblings
are cancelled and no outcomes are returned), and the shared cancellation
token.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import ScriptedChatModel, call, make_agent, make_registry, text
from orchestrate.errors import CancellationError, ModelRequestError, ToolNotFoundError
from orchestrate.models import OrchestrationRequest
from orchestrate.orchestrator import Orchestrator
from orchestrate.tools.dispatcher import ToolDispatcher
from orchestrate.tools.registry import ToolDefinition
from orchestrate.types import CancellationToken


def _request(*agent_ids: str, max_turns: int = 5) -> OrchestrationRequest:
    return OrchestrationRequest(agents=tuple(make_agent(a, max_turns=max_turns) for a in agent_ids))


def _orchestrator(model, registry=None) -> Orchestrator:
    registry = registry if registry is not None else make_registry()
    return Orchestrator(
        model=model,
        dispatcher=ToolDispatcher(registry),
        tools=registry.catalogue(),
    )


def _live_subagent_tasks() -> list[asyncio.Task]:
    return [
        task for task in asyncio.all_tasks()
        if task.get_name().startswith("subagent:") and not task.done()
    ]


class TestOrdering:
    @pytest.mark.asyncio
    async def test_outcomes_follow_request_order_not_completion_order(self, cancellation):
        model = ScriptedChatModel(
            {
                "slow": [[text("slow result")]],
                "fast": [[text("fast result")]],
                "mid": [[call("echo", "m1")], [text("mid result")]],
            },
            delays={"slow": 0.05},
        )

        outcomes = await _orchestrator(model).fan_out(_request("slow", "fast", "mid"), cancellation)

        assert [o.agent.id for o in outcomes] == ["slow", "fast", "mid"]
        assert [o.final_text for o in outcomes] == ["slow result", "fast result", "mid result"]
        assert outcomes[2].tool_invocations == 1

    @pytest.mark.asyncio
    async def test_single_agent(self, cancellation):
        model = ScriptedChatModel({"solo": [[text("only one")]]})
        outcomes = await _orchestrator(model).fan_out(_request("solo"), cancellation)
        assert len(outcomes) == 1
        assert outcomes[0].turns_completed == 1


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_subagents_run_side_by_side(self, cancellation):
        """Each agent's tool waits for the other; sequential execution would deadlock."""
        registry = make_registry()
        arrived: list[str] = []
        both_here = asyncio.Event()

        async def rendezvous(name: str) -> str:
            arrived.append(name)
            if len(arrived) == 2:
                both_here.set()
            await both_here.wait()
            return f"met {name}"

        registry.register(ToolDefinition(
            name="rendezvous",
            description="Waits for the other subagent",
            input_schema={"type": "object", "properties": {"name": {"type": "string"}}},
            handler=rendezvous,
        ))
        model = ScriptedChatModel({
            "left": [[call("rendezvous", "l1", name="left")], [text("left done")]],
            "right": [[call("rendezvous", "r1", name="right")], [text("right done")]],
        })

        outcomes = await asyncio.wait_for(
            _orchestrator(model, registry).fan_out(_request("left", "right"), cancellation),
            timeout=5,
        )

        assert sorted(arrived) == ["left", "right"]
        assert [o.final_text for o in outcomes] == ["left done", "right done"]

    @pytest.mark.asyncio
    async def test_subagent_transcripts_are_independent(self, cancellation):
        model = ScriptedChatModel({
            "a": [[call("echo", "a1", text="from a")], [text("a done")]],
            "b": [[text("b done")]],
        })

        await _orchestrator(model).fan_out(_request("a", "b"), cancellation)

        (b_request,) = model.requests_for("b")
        assert len(b_request.messages) == 1
        assert "<identity>b</identity>" in b_request.messages[0].text
        assert len(model.requests_for("a")[1].messages) == 3


class TestFailurePolicy:
    @pytest.mark.asyncio
    async def test_tool_failure_fails_whole_fan_out_and_cancels_siblings(self, cancellation):
        model = ScriptedChatModel(
            {
                "broken": [[call("missing", "x1")]],
                "patient": [[text("would finish eventually")]],
            },
            delays={"patient": 30},
        )

        with pytest.raises(ToolNotFoundError):
            await _orchestrator(model).fan_out(_request("patient", "broken"), cancellation)

        assert _live_subagent_tasks() == []
        assert len(model.requests_for("patient")) == 1

    @pytest.mark.asyncio
    async def test_model_failure_propagates(self, cancellation):
        model = ScriptedChatModel({
            "ok": [[text("fine")]],
            "bad": [RuntimeError("service unavailable")],
        })

        with pytest.raises(ModelRequestError) as exc_info:
            await _orchestrator(model).fan_out(_request("ok", "bad"), cancellation)

        assert exc_info.value.agent_id == "bad"

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_every_subagent(self):
        token = CancellationToken()
        token.cancel()
        model = ScriptedChatModel({"a": [[text("never")]], "b": [[text("never")]]})

        with pytest.raises(CancellationError):
            await _orchestrator(model).fan_out(_request("a", "b"), token)

        assert model.requests == []

    @pytest.mark.asyncio
    async def test_rejects_more_than_three_agents(self, cancellation):
        oversized = OrchestrationRequest.model_construct(
            agents=tuple(make_agent(f"a{i}") for i in range(4))
        )
        model = ScriptedChatModel([])

        with pytest.raises(ValueError, match="At most 3"):
            await _orchestrator(model).fan_out(oversized, cancellation)

        assert model.requests == []
