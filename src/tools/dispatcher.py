"""Tool dispatch: name lookup → argument validation → handler → envelope.

The dispatcher is the error-containment boundary for a tool call. Every
outcome, including unknown names, invalid arguments and adapter failures,
comes back as a ToolCallResponse; only task cancellation propagates.
"""

from __future__ import annotations

import inspect
import time
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field

from src.infra.errors import HyperFillError, ToolValidationError, UnknownToolError
from src.tools.envelope import ToolCallResponse, error_envelope, success_envelope
from src.tools.schema import validate_arguments

if TYPE_CHECKING:
    from src.session.models import SessionContext
    from src.tools.registry import ToolRegistry

logger = structlog.get_logger()


class ToolCallRequest(BaseModel):
    name: str
    arguments: Any = Field(default_factory=dict)


class ToolDispatcher:
    """Routes tool calls through the registry that also backs listing."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def routable_names(self) -> set[str]:
        return set(self._registry.names())

    async def dispatch(
        self, request: ToolCallRequest, session: SessionContext
    ) -> ToolCallResponse:
        name = request.name
        arguments = request.arguments if request.arguments is not None else {}

        tool = self._registry.get(name)
        if tool is None:
            error = UnknownToolError(name)
            logger.warning(
                "tool_unknown",
                server=self._registry.server_name,
                tool_name=name,
                session_id=session.session_id,
            )
            return error_envelope(error.message)

        problems = validate_arguments(tool.definition.input_schema, arguments)
        if problems:
            error = ToolValidationError(name, problems)
            logger.warning(
                "tool_arguments_invalid",
                tool_name=name,
                problems=problems,
                session_id=session.session_id,
            )
            return error_envelope(error.message)

        started = time.monotonic()
        try:
            result = tool.handler(dict(arguments), session)
            if inspect.isawaitable(result):
                result = await result
        except HyperFillError as e:
            logger.warning(
                "tool_failed",
                tool_name=name,
                code=e.code,
                error=str(e),
                session_id=session.session_id,
            )
            return error_envelope(f"Error executing {name}: {e}")
        except Exception as e:
            logger.exception(
                "tool_crashed",
                tool_name=name,
                session_id=session.session_id,
            )
            return error_envelope(f"Error executing {name}: {e}")

        logger.info(
            "tool_dispatched",
            server=self._registry.server_name,
            tool_name=name,
            session_id=session.session_id,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        try:
            return success_envelope(result)
        except (TypeError, ValueError) as e:
            logger.exception("tool_result_unserializable", tool_name=name)
            return error_envelope(f"Error executing {name}: result is not serializable ({e})")
