"""Argument validation against a tool's declared input schema.

Checks required-field presence, primitive types and enums. Nested
schemas are not descended into; adapters own deeper semantics.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": _is_number,
    "integer": _is_integer,
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, Mapping),
    "array": lambda v: isinstance(v, list | tuple),
}


def validate_arguments(schema: Mapping[str, Any], arguments: Any) -> list[str]:
    """Return a list of human-readable problems; empty means valid."""
    if not isinstance(arguments, Mapping):
        return [f"arguments must be an object (got {type(arguments).__name__})"]

    problems: list[str] = []
    properties: Mapping[str, Any] = schema.get("properties", {}) or {}

    for field_name in schema.get("required", ()):
        if arguments.get(field_name) is None:
            problems.append(f"missing required field '{field_name}'")

    for field_name, value in arguments.items():
        field_schema = properties.get(field_name)
        if field_schema is None or value is None:
            continue
        expected = field_schema.get("type")
        check = _TYPE_CHECKS.get(expected) if isinstance(expected, str) else None
        if check is not None and not check(value):
            problems.append(
                f"field '{field_name}' must be {expected} (got {type(value).__name__})"
            )
            continue
        allowed = field_schema.get("enum")
        if allowed is not None and value not in allowed:
            problems.append(f"field '{field_name}' must be one of {list(allowed)}")
        if expected == "array" and "items" in field_schema:
            item_type = field_schema["items"].get("type")
            item_check = _TYPE_CHECKS.get(item_type)
            if item_check is not None and not all(item_check(item) for item in value):
                problems.append(f"field '{field_name}' items must be {item_type}")

    return problems
