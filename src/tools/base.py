from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.session.models import SessionContext

# Handlers receive the validated argument bag and the calling session.
# Sync handlers are accepted for adapter reads that never suspend.
ToolHandler = Callable[[dict[str, Any], "SessionContext"], Awaitable[Any] | Any]


@dataclass(frozen=True)
class ToolDefinition:
    """Advertised shape of a tool: unique name, description and JSON input schema."""

    name: str
    description: str
    input_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(self.input_schema.get("required", ()))

    def to_wire(self) -> dict[str, Any]:
        """Listing form: {name, description, inputSchema}."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class RegisteredTool:
    """A definition bound to exactly one handler. Listing and routing share these."""

    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


def object_schema(
    properties: dict[str, dict[str, Any]] | None = None,
    required: list[str] | None = None,
) -> dict[str, Any]:
    """Build a JSON object schema in the shape tools advertise."""
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = list(required)
    return schema
