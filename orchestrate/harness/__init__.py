"""Subagent harness: the runtime loop that drives one delegated task."""
from orchestrate.harness.loop import LoopState, SubagentLoop

__all__ = ["SubagentLoop", "LoopState"]
