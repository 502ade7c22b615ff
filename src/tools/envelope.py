"""Response envelope: the uniform {content, isError} shape of every tool call."""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolCallResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: tuple[TextContent, ...]
    is_error: bool = Field(False, alias="isError")

    @property
    def text(self) -> str:
        """Concatenated text of all content entries."""
        return "".join(item.text for item in self.content)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, set | frozenset | tuple):
        return list(value)
    return str(value)


def render_result(result: Any) -> str:
    """Pretty-print a handler result as JSON text."""
    return json.dumps(result, indent=2, default=_json_default)


def success_envelope(result: Any) -> ToolCallResponse:
    return ToolCallResponse(content=(TextContent(text=render_result(result)),), is_error=False)


def error_envelope(message: str) -> ToolCallResponse:
    return ToolCallResponse(content=(TextContent(text=message),), is_error=True)
