"""Tests for ToolDispatcher: routing, validation gate, error containment, envelopes."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.infra.errors import ExternalCallFailed, NotFound
from src.services.trader import AptosTrader
from src.tools.base import ToolDefinition, object_schema
from src.tools.builtins import register_executive_tools, register_pricer_tools
from src.tools.dispatcher import ToolCallRequest, ToolDispatcher
from src.tools.registry import ToolRegistry
from tests.fakes import ACCOUNT, VAULT, FakeChain

ECHO = ToolDefinition(
    name="echo",
    description="Echo the message",
    input_schema=object_schema({"message": {"type": "string"}}, ["message"]),
)


def _dispatcher(handler) -> ToolDispatcher:
    registry = ToolRegistry("test")
    registry.register(ECHO, handler)
    return ToolDispatcher(registry)


class TestDispatchOutcomes:
    @pytest.mark.asyncio()
    async def test_success_is_pretty_json(self, session) -> None:
        dispatcher = _dispatcher(AsyncMock(return_value={"echo": "hi", "n": 1}))
        response = await dispatcher.dispatch(
            ToolCallRequest(name="echo", arguments={"message": "hi"}), session
        )
        assert response.is_error is False
        assert response.text == json.dumps({"echo": "hi", "n": 1}, indent=2)
        assert response.to_wire() == {
            "content": [{"type": "text", "text": response.text}],
            "isError": False,
        }

    @pytest.mark.asyncio()
    async def test_sync_handler_accepted(self, session) -> None:
        dispatcher = _dispatcher(lambda args, s: args["message"].upper())
        response = await dispatcher.dispatch(
            ToolCallRequest(name="echo", arguments={"message": "hi"}), session
        )
        assert response.text == '"HI"'

    @pytest.mark.asyncio()
    async def test_unknown_tool(self, session) -> None:
        handler = AsyncMock()
        dispatcher = _dispatcher(handler)
        response = await dispatcher.dispatch(ToolCallRequest(name="nope"), session)
        assert response.is_error is True
        assert response.text == "Unknown tool: nope"
        handler.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_missing_argument_never_reaches_handler(self, session) -> None:
        handler = AsyncMock()
        dispatcher = _dispatcher(handler)
        response = await dispatcher.dispatch(ToolCallRequest(name="echo"), session)
        assert response.is_error is True
        assert response.text == "Invalid arguments for echo: missing required field 'message'"
        handler.assert_not_called()

    @pytest.mark.asyncio()
    async def test_non_object_arguments_rejected(self, session) -> None:
        handler = AsyncMock()
        dispatcher = _dispatcher(handler)
        response = await dispatcher.dispatch(
            ToolCallRequest(name="echo", arguments="hi"), session
        )
        assert response.is_error is True
        assert response.text.startswith("Invalid arguments for echo: arguments must be an object")
        handler.assert_not_called()

    @pytest.mark.asyncio()
    async def test_domain_error_message_only(self, session) -> None:
        dispatcher = _dispatcher(AsyncMock(side_effect=NotFound("Market client not found for x")))
        response = await dispatcher.dispatch(
            ToolCallRequest(name="echo", arguments={"message": "hi"}), session
        )
        assert response.is_error is True
        assert response.text == "Error executing echo: Market client not found for x"

    @pytest.mark.asyncio()
    async def test_unexpected_error_contained(self, session) -> None:
        dispatcher = _dispatcher(AsyncMock(side_effect=KeyError("boom")))
        response = await dispatcher.dispatch(
            ToolCallRequest(name="echo", arguments={"message": "hi"}), session
        )
        assert response.is_error is True
        assert response.text == "Error executing echo: 'boom'"
        assert "Traceback" not in response.text

    @pytest.mark.asyncio()
    async def test_cancellation_propagates(self, session) -> None:
        dispatcher = _dispatcher(AsyncMock(side_effect=asyncio.CancelledError()))
        with pytest.raises(asyncio.CancelledError):
            await dispatcher.dispatch(
                ToolCallRequest(name="echo", arguments={"message": "hi"}), session
            )

    @pytest.mark.asyncio()
    async def test_unserializable_result_becomes_error(self, session) -> None:
        circular: dict = {}
        circular["self"] = circular
        dispatcher = _dispatcher(AsyncMock(return_value=circular))
        response = await dispatcher.dispatch(
            ToolCallRequest(name="echo", arguments={"message": "hi"}), session
        )
        assert response.is_error is True
        assert response.text.startswith("Error executing echo:")


class TestListingRoutingParity:
    def test_listed_names_equal_routable_names(self) -> None:
        trader = AptosTrader(FakeChain(), account=ACCOUNT, vault_address=VAULT)
        for register in (register_executive_tools, register_pricer_tools):
            registry = ToolRegistry("parity")
            register(registry, trader)
            dispatcher = ToolDispatcher(registry)
            listed = {entry["name"] for entry in registry.list_tools_payload()}
            assert listed == dispatcher.routable_names()


class TestAdapterArgumentMapping:
    @pytest.mark.asyncio()
    async def test_camel_case_arguments_mapped_to_adapter(self, session) -> None:
        trader = MagicMock()
        trader.place_limit_order = AsyncMock(return_value={"ok": True})
        registry = ToolRegistry("executive")
        register_executive_tools(registry, trader)

        response = await ToolDispatcher(registry).dispatch(
            ToolCallRequest(
                name="place_limit_order",
                arguments={"asset": "APT", "isBuy": True, "price": "12.50", "size": 1.0},
            ),
            session,
        )

        assert response.is_error is False
        trader.place_limit_order.assert_awaited_once_with(
            "APT", True, "12.50", 1.0, leverage=None, reduce_only=False
        )

    @pytest.mark.asyncio()
    async def test_missing_size_does_not_touch_adapter(self, session) -> None:
        trader = MagicMock()
        trader.place_limit_order = AsyncMock()
        registry = ToolRegistry("executive")
        register_executive_tools(registry, trader)

        response = await ToolDispatcher(registry).dispatch(
            ToolCallRequest(
                name="place_limit_order",
                arguments={"asset": "APT", "isBuy": True, "price": "12.50"},
            ),
            session,
        )

        assert response.is_error is True
        assert "size" in response.text
        trader.place_limit_order.assert_not_called()

    @pytest.mark.asyncio()
    async def test_adapter_failure_surfaces_message(self, session) -> None:
        trader = MagicMock()
        trader.cancel_order = AsyncMock(side_effect=ExternalCallFailed("Request timeout"))
        registry = ToolRegistry("executive")
        register_executive_tools(registry, trader)

        response = await ToolDispatcher(registry).dispatch(
            ToolCallRequest(name="cancel_order", arguments={"orderId": "apt_1_x"}), session
        )

        assert response.to_wire() == {
            "content": [{"type": "text", "text": "Error executing cancel_order: Request timeout"}],
            "isError": True,
        }
