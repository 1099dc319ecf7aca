"""
Tool Dispatcher: the boundary between a subagent asking for a tool and the
tool actually running.

The dispatcher looks the tool up in the registry, checks the arguments
against the tool's JSON Schema, runs the handler (sync or async), and
normalizes whatever comes back into a ToolResult of ordered segments.

Unlike a user-facing executor, failures are not fed back to the model as
error results: any dispatch failure aborts the subagent, and with it the
whole orchestration. Each failure kind has its own exception so callers can
tell a missing tool from a crashing one.
"""

from __future__ import annotations

import inspect
import time
from typing import Any, Optional

import structlog

from orchestrate.errors import (
    CancellationError,
    ToolDispatchError,
    ToolInvocationError,
    ToolNotFoundError,
)
from orchestrate.tools.registry import ToolRegistry
from orchestrate.types import CancellationToken, ToolResult

logger = structlog.get_logger(__name__)


_SCHEMA_TYPES: dict[str, tuple[type, ...]] = {
    "object": (dict,),
    "array": (list,),
    "string": (str,),
    "boolean": (bool,),
    "integer": (int,),
    "number": (int, float),
}


def _json_type_matches(expected: str, value: Any) -> bool:
    accepted = _SCHEMA_TYPES.get(expected)
    if accepted is None:
        return True
    # JSON has no bool/int overlap.
    if isinstance(value, bool) and expected in ("integer", "number"):
        return False
    return isinstance(value, accepted)


def _argument_problem(schema: dict[str, Any], arguments: dict[str, Any]) -> Optional[str]:
    """First required-field or top-level type violation in ``arguments``, if any."""
    absent = [key for key in schema.get("required", ()) if key not in arguments]
    if absent:
        return f"Missing required parameter(s): {', '.join(absent)}"

    declared = schema.get("properties") or {}
    for key, value in arguments.items():
        prop = declared.get(key)
        expected = prop.get("type") if isinstance(prop, dict) else None
        if isinstance(expected, str) and not _json_type_matches(expected, value):
            actual = "boolean" if isinstance(value, bool) else type(value).__name__
            return f"Parameter '{key}' expected {expected}, got {actual}"
    return None


def normalize_result(result: Any) -> ToolResult:
    """Wrap a handler's return value as an ordered tuple of segments."""
    if isinstance(result, ToolResult):
        return result
    if result is None:
        return ToolResult(content=())
    if isinstance(result, (list, tuple)):
        return ToolResult(content=tuple(result))
    return ToolResult(content=(result,))


class ToolDispatcher:
    """
    Invokes registered tools on behalf of subagents.

    Holds nothing but counters, so one dispatcher is shared by every subagent
    in an orchestration.
    """

    def __init__(self, registry: ToolRegistry):
        self._registry = registry
        self._dispatched = 0
        self._failed = 0

    def _fail(self, error: ToolDispatchError) -> ToolDispatchError:
        self._failed += 1
        logger.warning("tool_dispatcher.rejected", tool_name=error.tool_name, error=str(error))
        return error

    async def invoke(
        self,
        tool_name: str,
        arguments: Any,
        cancellation: Optional[CancellationToken] = None,
    ) -> ToolResult:
        """
        Run ``tool_name`` with ``arguments`` and return its normalized result.

        Raises:
            CancellationError: cancellation was requested before the call.
            ToolNotFoundError: unknown or disabled tool, or no handler.
            ToolInvocationError: invalid arguments or the handler raised.
        """
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        self._dispatched += 1
        started = time.monotonic()

        definition = self._registry.get(tool_name)
        if definition is None or not definition.enabled:
            raise self._fail(ToolNotFoundError(tool_name, f"Unknown tool: {tool_name}"))
        if definition.handler is None:
            raise self._fail(
                ToolNotFoundError(tool_name, f"No handler registered for tool: {tool_name}")
            )

        arguments = {} if arguments is None else arguments
        if not isinstance(arguments, dict):
            raise self._fail(ToolInvocationError(
                tool_name,
                f"Tool '{tool_name}' expects an object of arguments, "
                f"got {type(arguments).__name__}",
            ))
        problem = _argument_problem(definition.input_schema, arguments)
        if problem is not None:
            raise self._fail(ToolInvocationError(tool_name, f"Tool '{tool_name}': {problem}"))

        try:
            outcome = definition.handler(**arguments)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except CancellationError:
            raise
        except Exception as exc:
            detail = f"{type(exc).__name__}: {exc}"
            raise self._fail(
                ToolInvocationError(tool_name, f"Tool '{tool_name}' failed: {detail}")
            ) from exc

        result = normalize_result(outcome)
        logger.debug(
            "tool_dispatcher.completed",
            tool_name=tool_name,
            segments=len(result.content),
            elapsed=round(time.monotonic() - started, 3),
        )
        return result

    @property
    def stats(self) -> dict[str, int]:
        return {"total_dispatches": self._dispatched, "failures": self._failed}
