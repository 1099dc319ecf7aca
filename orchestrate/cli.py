"""CLI application: run an orchestration request from a JSON file.

    orchestrate run request.json
    orchestrate prompt my-agent "You review code." "Review main.py"
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import signal
import sys
from typing import Any

import click
import structlog

from orchestrate.errors import OrchestrationError


def _truncate_prompt_fields(logger, method_name, event_dict):
    """Structlog processor keeping prompt text and tool payloads out of log lines."""
    long_keys = {"system_prompt", "user_prompt", "summary", "justification", "problems"}
    max_display_len = 80

    for key in long_keys:
        if key in event_dict:
            val = event_dict[key]
            if isinstance(val, str) and len(val) > max_display_len:
                event_dict[key] = val[:max_display_len] + "... [truncated]"

    return event_dict


_logging_configured = False


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog and standard-library logging for CLI entry points.

    Safe to call more than once; subsequent calls are no-ops. Logs go to
    stderr so the report on stdout stays machine-readable.
    """
    global _logging_configured  # noqa: PLW0603
    if _logging_configured:
        return
    _logging_configured = True

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.INFO,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _truncate_prompt_fields,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def async_cmd(func):
    """Decorator to run an async Click command via asyncio.run()."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(func(*args, **kwargs))

    return wrapper


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug-level logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Orchestrate - run parallel subagents against a fixed chat model."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(verbose)


@cli.command("run")
@click.argument("request_file", type=click.File("r", encoding="utf-8"))
@async_cmd
async def run_cmd(request_file) -> None:
    """Run the subagents described in REQUEST_FILE and print the JSON report."""
    from orchestrate.api.claude import resolve_model
    from orchestrate.config import ClaudeConfig
    from orchestrate.tool import OrchestrateSubagentsTool
    from orchestrate.tools.registry import ToolRegistry
    from orchestrate.types import CancellationToken

    try:
        raw = json.load(request_file)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Request file is not valid JSON: {exc}") from exc

    try:
        config = ClaudeConfig()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    registry = ToolRegistry()
    tool = OrchestrateSubagentsTool(registry, lambda: resolve_model(config))
    tool.register()

    cancellation = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancellation.cancel)
    except NotImplementedError:  # pragma: no cover - Windows event loops
        pass

    click.echo(tool.prepare_invocation(raw), err=True)
    try:
        result = await tool.invoke(raw, cancellation)
    except OrchestrationError as exc:
        raise click.ClickException(str(exc)) from exc

    for segment in result.content:
        click.echo(segment)


@cli.command("prompt")
@click.argument("agent_id")
@click.argument("system_prompt")
@click.argument("user_prompt")
def prompt_cmd(agent_id: str, system_prompt: str, user_prompt: str) -> None:
    """Print the initial instruction block a subagent would receive."""
    from orchestrate.prompts import compose_initial_prompt

    click.echo(compose_initial_prompt(agent_id, system_prompt, user_prompt))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
