"""Tests for ToolRegistry: ordering, uniqueness, sealing, listing payload."""

from __future__ import annotations

import pytest

from src.tools.base import ToolDefinition, object_schema
from src.tools.registry import ToolRegistry


def _definition(name: str, required: list[str] | None = None) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=f"{name} tool",
        input_schema=object_schema({"x": {"type": "string"}}, required),
    )


def _noop(args, session):
    return None


class TestToolRegistry:
    def test_lists_in_registration_order(self) -> None:
        registry = ToolRegistry("test")
        for name in ("b_tool", "a_tool", "c_tool"):
            registry.register(_definition(name), _noop)
        assert [d.name for d in registry.list()] == ["b_tool", "a_tool", "c_tool"]
        assert registry.names() == ["b_tool", "a_tool", "c_tool"]

    def test_listing_is_deterministic(self) -> None:
        registry = ToolRegistry("test")
        registry.register(_definition("one"), _noop)
        registry.register(_definition("two"), _noop)
        assert registry.list_tools_payload() == registry.list_tools_payload()

    def test_duplicate_name_rejected(self) -> None:
        registry = ToolRegistry("test")
        registry.register(_definition("dup"), _noop)
        with pytest.raises(ValueError, match="already registered: dup"):
            registry.register(_definition("dup"), _noop)

    def test_register_after_seal_rejected(self) -> None:
        registry = ToolRegistry("test")
        registry.seal()
        assert registry.sealed
        with pytest.raises(RuntimeError, match="sealed"):
            registry.register(_definition("late"), _noop)

    def test_empty_registry_lists_nothing(self) -> None:
        registry = ToolRegistry("empty")
        assert registry.list() == []
        assert registry.list_tools_payload() == []
        assert len(registry) == 0

    def test_get_and_contains(self) -> None:
        registry = ToolRegistry("test")
        registry.register(_definition("known"), _noop)
        assert "known" in registry
        assert registry.get("known").handler is _noop
        assert registry.get("missing") is None

    def test_wire_format_uses_input_schema_key(self) -> None:
        registry = ToolRegistry("test")
        registry.register(_definition("tool", ["x"]), _noop)
        [entry] = registry.list_tools_payload()
        assert entry == {
            "name": "tool",
            "description": "tool tool",
            "inputSchema": {
                "type": "object",
                "properties": {"x": {"type": "string"}},
                "required": ["x"],
            },
        }


class TestToolDefinition:
    def test_frozen(self) -> None:
        definition = _definition("frozen")
        with pytest.raises(AttributeError):
            definition.name = "other"  # type: ignore[misc]

    def test_required_defaults_to_empty(self) -> None:
        assert _definition("free").required == ()
        assert _definition("strict", ["x"]).required == ("x",)
