"""Projection of subagent outcomes into the caller-visible JSON report."""

from __future__ import annotations

from collections.abc import Sequence

from orchestrate.models import AggregatedReport, SubagentOutcome, SubagentReport


def build_report(outcomes: Sequence[SubagentOutcome]) -> AggregatedReport:
    """Project outcomes (already in request order) into the minimal output records."""
    return AggregatedReport(
        subagents=[
            SubagentReport(
                id=outcome.agent.id,
                system_prompt=outcome.agent.system_prompt,
                user_prompt=outcome.agent.user_prompt,
                max_turns=outcome.agent.max_turns,
                turns_taken=outcome.turns_completed,
                tool_calls=outcome.tool_invocations,
                summary=outcome.final_text,
            )
            for outcome in outcomes
        ]
    )


def render_report(report: AggregatedReport) -> str:
    """Serialize with wire (camelCase) names, two-space indented."""
    return report.model_dump_json(by_alias=True, indent=2)
