from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.constants import INVALID_REQUEST, JSONRPC_VERSION, PARSE_ERROR
from src.infra.errors import ProtocolError

RequestId = str | int


class JSONRPCRequest(BaseModel):
    """A JSON-RPC request or notification (id is None for notifications)."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"]
    method: str
    params: dict[str, Any] | None = None
    id: RequestId | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JSONRPCErrorData(BaseModel):
    code: int
    message: str
    data: Any | None = None


class JSONRPCError(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    error: JSONRPCErrorData
    id: RequestId | None = None


class JSONRPCResponse(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    result: dict[str, Any] = Field(default_factory=dict)
    id: RequestId


class InitializeParams(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    protocol_version: str = Field(alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: dict[str, Any] = Field(default_factory=dict, alias="clientInfo")


class CallToolParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    arguments: Any = None


def error_payload(
    code: int, message: str, request_id: RequestId | None = None, data: Any | None = None
) -> dict[str, Any]:
    """Build a JSON-RPC error object ready for serialization."""
    payload = JSONRPCError(
        error=JSONRPCErrorData(code=code, message=message, data=data), id=request_id
    ).model_dump()
    if data is None:
        payload["error"].pop("data")
    return payload


def result_payload(request_id: RequestId, result: dict[str, Any]) -> dict[str, Any]:
    return JSONRPCResponse(id=request_id, result=result).model_dump()


def is_initialize_request(body: Any) -> bool:
    """True only for a well-formed initialize request (not a notification, not a batch)."""
    if not isinstance(body, dict) or body.get("method") != "initialize":
        return False
    try:
        request = JSONRPCRequest.model_validate(body)
        InitializeParams.model_validate(request.params or {})
    except ValidationError:
        return False
    return not request.is_notification


def parse_message(data: Any) -> JSONRPCRequest:
    """Validate one decoded JSON value as a JSON-RPC request.

    Raises ProtocolError(rpc_code=-32600) on schema mismatch.
    """
    try:
        return JSONRPCRequest.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Invalid Request: {e.errors()[0]['msg']}", rpc_code=INVALID_REQUEST) from e


def decode_line(raw: str | bytes) -> Any:
    """Decode one frame of JSON text. Raises ProtocolError(rpc_code=-32700)."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Parse error: {e}", rpc_code=PARSE_ERROR) from e
