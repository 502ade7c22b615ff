"""Custom exception hierarchy for the HyperFill gateway.

All application-specific exceptions inherit from HyperFillError,
which carries an error code for envelope and JSON-RPC error mapping.
"""

from __future__ import annotations

from src.constants import INVALID_REQUEST


class HyperFillError(Exception):
    """Base exception for all HyperFill errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code

    @property
    def message(self) -> str:
        return str(self)


class ProtocolError(HyperFillError):
    """Malformed JSON-RPC message or session bootstrap.

    rpc_code is the numeric JSON-RPC error code sent back to the client.
    """

    def __init__(
        self, message: str, *, rpc_code: int = INVALID_REQUEST, code: str = "PROTOCOL_ERROR"
    ) -> None:
        super().__init__(message, code=code)
        self.rpc_code = rpc_code


class ToolError(HyperFillError):
    """Errors raised while resolving or invoking a tool."""

    def __init__(self, message: str, *, code: str = "TOOL_ERROR") -> None:
        super().__init__(message, code=code)


class UnknownToolError(ToolError):
    """Tool name is not registered on this server."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}", code="UNKNOWN_TOOL")
        self.name = name


class ToolValidationError(ToolError):
    """Tool arguments do not satisfy the declared input schema."""

    def __init__(self, name: str, problems: list[str]) -> None:
        super().__init__(
            f"Invalid arguments for {name}: {'; '.join(problems)}",
            code="INVALID_ARGUMENTS",
        )
        self.problems = problems


class AdapterError(HyperFillError):
    """Errors from a backend adapter (chain, market feed, LLM)."""

    def __init__(self, message: str, *, code: str = "ADAPTER_ERROR") -> None:
        super().__init__(message, code=code)


class ExternalCallFailed(AdapterError):
    """An opaque external call (view function, HTTP fetch) failed or timed out."""

    def __init__(self, message: str, *, code: str = "EXTERNAL_CALL_FAILED") -> None:
        super().__init__(message, code=code)


class NotFound(AdapterError):
    """Requested market, asset or record does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="NOT_FOUND")


class InvalidArgument(AdapterError):
    """Argument passed schema validation but is semantically invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_ARGUMENT")


class LLMError(AdapterError):
    """Errors from LLM API calls (timeouts, rate limits, failures)."""

    def __init__(self, message: str, *, code: str = "LLM_ERROR") -> None:
        super().__init__(message, code=code)
