"""Tool system: the external capabilities a subagent may call."""
from orchestrate.tools.dispatcher import ToolDispatcher
from orchestrate.tools.registry import ToolDefinition, ToolRegistry

__all__ = ["ToolRegistry", "ToolDefinition", "ToolDispatcher"]
