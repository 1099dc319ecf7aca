"""
Tests for orchestrate.tools.registry.ToolRegistry.
"""

from __future__ import annotations

import pytest

from orchestrate.config import ORCHESTRATION_TOOL_NAME
from orchestrate.tools.registry import ToolDefinition, ToolRegistry


def _tool(name: str, **overrides) -> ToolDefinition:
    data = dict(
        name=name,
        description=f"{name} tool",
        input_schema={"type": "object", "properties": {}},
        handler=None,
    )
    data.update(overrides)
    return ToolDefinition(**data)


def test_catalogue_uses_api_format():
    registry = ToolRegistry()
    registry.register(_tool("search"))

    assert registry.catalogue() == (
        {
            "name": "search",
            "description": "search tool",
            "input_schema": {"type": "object", "properties": {}},
        },
    )


def test_catalogue_excludes_orchestration_tool():
    registry = ToolRegistry()
    registry.register(_tool("search"))
    registry.register(_tool(ORCHESTRATION_TOOL_NAME))
    registry.register(_tool("read_file"))

    names = [tool["name"] for tool in registry.catalogue(exclude={ORCHESTRATION_TOOL_NAME})]

    assert names == ["search", "read_file"]


def test_catalogue_skips_disabled_tools():
    registry = ToolRegistry()
    registry.register(_tool("search", enabled=False))
    registry.register(_tool("read_file"))

    assert [tool["name"] for tool in registry.catalogue()] == ["read_file"]


def test_catalogue_is_an_immutable_snapshot():
    registry = ToolRegistry()
    registry.register(_tool("search"))
    snapshot = registry.catalogue()

    registry.register(_tool("late_arrival"))

    assert isinstance(snapshot, tuple)
    assert [tool["name"] for tool in snapshot] == ["search"]


def test_register_rejects_name_collisions_unless_override():
    registry = ToolRegistry()
    registry.register(_tool("search"))

    with pytest.raises(ValueError, match="already registered"):
        registry.register(_tool("search", description="other"))

    registry.register(_tool("search", description="other"), allow_override=True)
    assert registry.get("search").description == "other"
    assert len(registry) == 1


def test_unregister():
    registry = ToolRegistry()
    registry.register(_tool("search"))

    assert registry.unregister("search") is True
    assert registry.unregister("search") is False
    assert registry.get("search") is None
    assert "search" not in registry
    assert list(registry) == []
