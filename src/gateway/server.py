"""JSON-RPC method handling for one logical tool server.

McpServer is transport-agnostic: the HTTP session manager and the stdio
loop both feed it decoded messages plus the resolved SessionContext.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from src.constants import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
)
from src.gateway.protocol import (
    CallToolParams,
    InitializeParams,
    JSONRPCRequest,
    error_payload,
    parse_message,
    result_payload,
)
from src.infra.errors import ProtocolError
from src.session.models import SessionContext
from src.tools.dispatcher import ToolCallRequest, ToolDispatcher
from src.tools.registry import ToolRegistry

logger = structlog.get_logger()


class McpServer:
    """Advertises a sealed tool registry and answers protocol methods."""

    def __init__(
        self,
        name: str,
        registry: ToolRegistry,
        *,
        version: str = "1.0.0",
        protocol_version: str = PROTOCOL_VERSION,
        instructions: str | None = None,
    ) -> None:
        self.name = name
        self.version = version
        self.protocol_version = protocol_version
        self.instructions = instructions
        registry.seal()
        self.registry = registry
        self.dispatcher = ToolDispatcher(registry)

    def initialize_result(self, params: InitializeParams) -> dict[str, Any]:
        requested = params.protocol_version
        negotiated = (
            requested if requested in SUPPORTED_PROTOCOL_VERSIONS else self.protocol_version
        )
        result: dict[str, Any] = {
            "protocolVersion": negotiated,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": self.name, "version": self.version},
        }
        if self.instructions:
            result["instructions"] = self.instructions
        return result

    async def handle_message(
        self, message: Any, session: SessionContext
    ) -> dict[str, Any] | None:
        """Handle one decoded JSON-RPC message.

        Returns the response object, or None for notifications.
        Never raises for protocol or tool failures.
        """
        request_id = message.get("id") if isinstance(message, dict) else None
        try:
            request = parse_message(message)
            return await self._handle_request(request, session)
        except ProtocolError as e:
            logger.warning(
                "protocol_error", server=self.name, error=str(e), session_id=session.session_id
            )
            return error_payload(e.rpc_code, str(e), request_id)
        except Exception:
            logger.exception("unhandled_error", server=self.name, request_id=request_id)
            return error_payload(INTERNAL_ERROR, "An internal error occurred", request_id)

    async def _handle_request(
        self, request: JSONRPCRequest, session: SessionContext
    ) -> dict[str, Any] | None:
        session.transport_state.touch()
        method = request.method
        params = request.params or {}

        if request.is_notification:
            if method == "notifications/initialized":
                session.transport_state.initialized = True
            logger.debug("notification_received", method=method, session_id=session.session_id)
            return None

        if method == "initialize":
            try:
                init = InitializeParams.model_validate(params)
            except ValidationError as e:
                raise ProtocolError(f"Invalid params: {e}", rpc_code=INVALID_PARAMS) from e
            result = self.initialize_result(init)
            session.transport_state.protocol_version = result["protocolVersion"]
            session.transport_state.client_info = dict(init.client_info)
            logger.info(
                "session_initialized",
                server=self.name,
                session_id=session.session_id,
                protocol_version=result["protocolVersion"],
                client=init.client_info.get("name"),
            )
            return result_payload(request.id, result)

        if method == "ping":
            return result_payload(request.id, {})

        if method == "tools/list":
            return result_payload(request.id, {"tools": self.registry.list_tools_payload()})

        if method == "tools/call":
            try:
                call = CallToolParams.model_validate(params)
            except ValidationError as e:
                raise ProtocolError(f"Invalid params: {e}", rpc_code=INVALID_PARAMS) from e
            response = await self.dispatcher.dispatch(
                ToolCallRequest(name=call.name, arguments=call.arguments), session
            )
            return result_payload(request.id, response.to_wire())

        return error_payload(METHOD_NOT_FOUND, f"Method not found: {method}", request.id)
