"""
Error taxonomy for subagent orchestration.

Every failure the engine raises derives from OrchestrationError so callers can
catch the whole family at the tool boundary. Only two failure kinds are ever
swallowed inside the engine: the budget-exhaustion summary request and token
estimation, both of which are diagnostic or best-effort.
"""

from __future__ import annotations


class OrchestrationError(Exception):
    """Base class for all orchestration failures."""


class RequestValidationError(OrchestrationError):
    """The incoming request was malformed; nothing was run."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__(
            "Failed to parse subagent request:\n- " + "\n- ".join(self.problems)
        )


class ModelUnavailableError(OrchestrationError):
    """The fixed chat model could not be resolved or may not be used."""


class ModelRequestError(OrchestrationError):
    """A single model request for one subagent turn failed."""

    def __init__(self, agent_id: str, message: str):
        self.agent_id = agent_id
        super().__init__(f"Model request failed for agent '{agent_id}': {message}")


class ToolDispatchError(OrchestrationError):
    """A tool invocation requested by a subagent failed."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(message)


class ToolNotFoundError(ToolDispatchError):
    """The requested tool is not registered, disabled, or has no handler."""


class ToolInvocationError(ToolDispatchError):
    """The tool handler raised while executing."""


class CancellationError(OrchestrationError):
    """Cooperative cancellation was requested by the caller."""

    def __init__(self, message: str = "Operation was cancelled"):
        super().__init__(message)
