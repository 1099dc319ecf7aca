"""
Tool Registry: the tools a subagent may be offered.

Tools are registered once with a JSON Schema, a description and a handler.
Before an orchestration starts, ``catalogue()`` freezes the enabled tools into
the tuple of definitions offered to the model. The orchestration tool itself
is filtered out of that snapshot, which is what keeps a subagent from fanning
out again. During the run the dispatcher resolves tool calls through
``get()``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class ToolDefinition:
    """
    One callable tool and the schema the model sees for it.

    The handler receives the model's arguments as keyword arguments and may
    be a plain function or a coroutine function.
    """
    name: str
    description: str
    input_schema: dict[str, Any]
    handler: Optional[Callable] = None
    category: str = "general"
    enabled: bool = True

    def to_api_format(self) -> dict[str, Any]:
        """The definition as offered to the model: name, description, schema."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


class ToolRegistry:
    """Name-keyed store of tool definitions, in registration order."""

    def __init__(self) -> None:
        self._by_name: dict[str, ToolDefinition] = {}

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(tuple(self._by_name.values()))

    def register(self, tool: ToolDefinition, *, allow_override: bool = False) -> None:
        """Add ``tool``; replacing an existing name requires ``allow_override``."""
        if tool.name in self._by_name and not allow_override:
            logger.warning("tool_registry.duplicate_name", name=tool.name)
            raise ValueError(
                f"Tool '{tool.name}' is already registered; "
                "pass allow_override=True to replace it."
            )
        self._by_name[tool.name] = tool
        logger.debug("tool_registry.registered", name=tool.name, category=tool.category)

    def unregister(self, name: str) -> bool:
        removed = self._by_name.pop(name, None)
        if removed is not None:
            logger.debug("tool_registry.unregistered", name=name)
        return removed is not None

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._by_name.get(name)

    def catalogue(self, exclude: Iterable[str] = ()) -> tuple[dict[str, Any], ...]:
        """
        Snapshot the enabled tools in API format, minus the excluded names.

        The snapshot is a tuple so every subagent of one orchestration can
        share it read-only.
        """
        skip = frozenset(exclude)
        return tuple(
            definition.to_api_format()
            for definition in self._by_name.values()
            if definition.enabled and definition.name not in skip
        )
