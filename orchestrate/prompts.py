"""
Prompt composition for subagents.

Two fixed instruction blocks are rendered here: the initial prompt that seeds
every subagent transcript, and the summary request sent when a subagent runs
out of turns. Caller text is escaped against the block's markup and
re-indented line by line, so no input can close its enclosing tag.
"""

from __future__ import annotations

import re

_LINE_BREAK_RE = re.compile(r"\r?\n")

SUBAGENT_ROLE = (
    "You are an autonomous subagent. Obey the provided instructions, use tools "
    "responsibly, and report concise, actionable findings."
)

RESPONSE_GUIDELINES = (
    "Prefer structured, factual answers.",
    "Clearly cite files or resources you relied on.",
    "Only call tools when strictly necessary.",
)

SUMMARY_INSTRUCTIONS = (
    "Summarize the conversation and tool outputs completed so far.",
    "Focus on key findings and recommended next steps.",
    "Do not call additional tools.",
)


def escape_markup(text: str) -> str:
    # Ampersand first so the entities added below are not double-escaped.
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_with_indent(text: str, indent: int) -> str:
    """Escape ``text`` and re-indent every (stripped) line by ``indent`` spaces."""
    pad = " " * indent
    return "\n".join(
        f"{pad}{escape_markup(line.strip())}" for line in _LINE_BREAK_RE.split(text)
    )


def compose_initial_prompt(agent_id: str, system_prompt: str, user_prompt: str) -> str:
    """Render the instruction block that opens a subagent's transcript."""
    lines = [
        "<orchestrateSubagent>",
        f"  <identity>{escape_markup(agent_id)}</identity>",
        f"  <role>{SUBAGENT_ROLE}</role>",
        "  <systemInstructions>",
        escape_with_indent(system_prompt, 4),
        "  </systemInstructions>",
        "  <task>",
        escape_with_indent(user_prompt, 4),
        "  </task>",
        "  <responseGuidelines>",
    ]
    lines.extend(f"    <item>{item}</item>" for item in RESPONSE_GUIDELINES)
    lines.extend(["  </responseGuidelines>", "</orchestrateSubagent>"])
    return "\n".join(lines)


def compose_summary_prompt() -> str:
    """Render the request for a final, tool-free summary after budget exhaustion."""
    lines = [
        "<orchestrateSubagentSummary>",
        "  <status>turn-budget-exhausted</status>",
    ]
    lines.extend(f"  <instruction>{item}</instruction>" for item in SUMMARY_INSTRUCTIONS)
    lines.append("</orchestrateSubagentSummary>")
    return "\n".join(lines)
