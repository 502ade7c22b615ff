"""Opaque Aptos fullnode reads: Move view functions and account resources.

Blocking requests calls run in a worker thread so each read is a
suspension point for the event loop. Every failure, including timeouts,
surfaces as ExternalCallFailed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import requests
import structlog

from src.infra.errors import ExternalCallFailed

logger = structlog.get_logger()


class ChainClient(Protocol):
    """What adapters need from the chain. Swappable with a fake in tests."""

    async def view(self, function: str, arguments: list[Any]) -> list[Any]: ...

    async def get_account_resource(self, address: str, resource_type: str) -> dict[str, Any]: ...


class AptosRestClient:
    """Read-only client for the Aptos fullnode REST API."""

    def __init__(self, node_url: str, *, timeout_s: float = 10.0) -> None:
        self._node_url = node_url.rstrip("/")
        self._timeout_s = timeout_s
        self._http = requests.Session()
        self._http.headers.update({"Content-Type": "application/json"})

    async def view(self, function: str, arguments: list[Any]) -> list[Any]:
        payload = {"function": function, "type_arguments": [], "arguments": arguments}
        data = await self._call("POST", "/view", json=payload, context=function)
        if not isinstance(data, list):
            raise ExternalCallFailed(f"Unexpected view response for {function}: {data!r}")
        return data

    async def get_account_resource(self, address: str, resource_type: str) -> dict[str, Any]:
        path = f"/accounts/{address}/resource/{resource_type}"
        data = await self._call("GET", path, context=resource_type)
        if not isinstance(data, dict):
            raise ExternalCallFailed(f"Unexpected resource response for {resource_type}")
        return data.get("data", data)

    async def _call(self, method: str, path: str, *, context: str, **kwargs: Any) -> Any:
        url = f"{self._node_url}{path}"
        logger.debug("aptos_request", method=method, context=context)
        try:
            response = await asyncio.to_thread(
                self._http.request, method, url, timeout=self._timeout_s, **kwargs
            )
        except requests.Timeout as e:
            raise ExternalCallFailed(f"Request timeout calling {context}") from e
        except requests.RequestException as e:
            raise ExternalCallFailed(f"Network error calling {context}: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            raise ExternalCallFailed(
                f"Aptos node returned {response.status_code} for {context}: {message}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise ExternalCallFailed(f"Invalid JSON from Aptos node for {context}") from e


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error_code") or body)
    return str(body)
