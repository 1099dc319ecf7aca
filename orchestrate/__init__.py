"""
Orchestrate: Parallel Subagent Delegation for a Primary Agent.

A primary conversational agent hands focused tasks to up to three subagents.
Each subagent runs its own bounded tool-use loop against a language model and
reports back, so the primary conversation only ever sees the final summaries.

Architecture layers (bottom to top):
    1. Prompt composition (initial instruction block, budget summary request)
    2. Chat model boundary (streamed parts, token estimates)
    3. Tool registry and dispatcher (catalogue snapshot, invocation)
    4. Subagent loop (the per-agent turn state machine)
    5. Orchestrator (concurrent fan-out, all-or-nothing)
    6. Report (ordered JSON aggregation) and the orchestration tool itself
"""

__version__ = "0.1.0"
