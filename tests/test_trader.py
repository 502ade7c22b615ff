"""Tests for AptosTrader: order ids, lifecycle, failure shape, portfolio reads."""

from __future__ import annotations

import json
import re

import pytest

from src.infra.errors import ExternalCallFailed
from src.services.trader import AptosTrader, OrderState, generate_order_id, to_octas
from src.tools.builtins import register_executive_tools
from src.tools.dispatcher import ToolCallRequest, ToolDispatcher
from src.tools.registry import ToolRegistry
from tests.fakes import ACCOUNT, VAULT, FakeChain

ORDER_ID_RE = re.compile(r"^apt_\d+_[0-9a-z]{9}$")


def _trader(chain: FakeChain) -> AptosTrader:
    return AptosTrader(chain, account=ACCOUNT, vault_address=VAULT)


async def _order(trader: AptosTrader, order_id: str) -> dict:
    [order] = await trader.get_order_status([order_id])
    return order


class TestOrderIds:
    def test_format(self) -> None:
        assert ORDER_ID_RE.match(generate_order_id())

    def test_unique(self) -> None:
        assert len({generate_order_id() for _ in range(500)}) == 500

    def test_to_octas(self) -> None:
        assert to_octas(1.0) == "100000000"
        assert to_octas(0.5) == "50000000"


class TestOrderPlacement:
    @pytest.mark.asyncio()
    async def test_limit_order_calls_allocate(self) -> None:
        chain = FakeChain({"execute_vault_action": ["ok"]})
        result = await _trader(chain).place_limit_order("APT", True, "12.50", 1.0)

        assert result["response"] == {"success": True, "result": ["ok"]}
        assert ORDER_ID_RE.match(result["orderId"])
        function, arguments = chain.calls[0]
        assert function == f"{VAULT}::hyperfill_vault::execute_vault_action"
        assert arguments == [VAULT, "allocate", "100000000", ACCOUNT]

    @pytest.mark.asyncio()
    async def test_failed_call_still_returns_order_id(self) -> None:
        trader = _trader(FakeChain(fail=ExternalCallFailed("Request timeout")))
        result = await trader.place_limit_order("APT", True, "12.50", 1.0)

        assert result["response"] == {"success": False, "error": "Request timeout"}
        assert ORDER_ID_RE.match(result["orderId"])
        assert (await _order(trader, result["orderId"]))["status"] == OrderState.failed.value

    @pytest.mark.asyncio()
    async def test_failed_chain_call_is_not_an_error_envelope(self, session) -> None:
        trader = _trader(FakeChain(fail=ExternalCallFailed("node unavailable")))
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
        payload = json.loads(response.text)
        assert payload["response"]["success"] is False
        assert payload["orderId"]

    @pytest.mark.asyncio()
    async def test_market_order_defaults(self) -> None:
        trader = _trader(FakeChain({"execute_vault_action": [True]}))
        result = await trader.place_market_order("APT", False, 2.0)
        order = await _order(trader, result["orderId"])
        assert order["type"] == "MARKET"
        assert order["side"] == "SELL"
        assert order["leverage"] == 1.1
        assert order["slippage"] == 5.0
        assert order["status"] == "ACKNOWLEDGED"

    @pytest.mark.asyncio()
    async def test_close_position_default_quantity(self) -> None:
        chain = FakeChain({"execute_vault_action": [True]})
        await _trader(chain).close_position("APT", "13.00")
        assert chain.calls[0][1] == [VAULT, "return_funds", "100000000"]

    @pytest.mark.asyncio()
    async def test_cancel_marks_acknowledged_order(self) -> None:
        chain = FakeChain({"execute_vault_action": [True], "get_vault_stats": [1]})
        trader = _trader(chain)
        placed = await trader.place_limit_order("APT", True, "12.50", 1.0)

        first = await trader.cancel_order(placed["orderId"])
        second = await trader.cancel_order(placed["orderId"])

        assert first["success"] is True
        assert second["success"] is True
        assert (await _order(trader, placed["orderId"]))["status"] == "CANCELLED"

    @pytest.mark.asyncio()
    async def test_cancel_leaves_failed_order_alone(self) -> None:
        chain = FakeChain({"get_vault_stats": [1]})
        trader = _trader(chain)
        placed = await trader.place_limit_order("APT", True, "12.50", 1.0)
        await trader.cancel_order(placed["orderId"])
        assert (await _order(trader, placed["orderId"]))["status"] == "FAILED"

    @pytest.mark.asyncio()
    async def test_collateral_calls(self) -> None:
        chain = FakeChain({"deposit_liquidity": [True], "withdraw_profits": [True]})
        trader = _trader(chain)
        assert (await trader.add_collateral("APT", 2.0, True))["success"] is True
        assert (await trader.remove_collateral("APT", 1.0, True))["success"] is True
        assert chain.calls[0][1] == [VAULT, "200000000"]
        assert chain.calls[1][1] == [VAULT]

    @pytest.mark.asyncio()
    async def test_take_profit_and_stop_loss_recorded(self) -> None:
        trader = _trader(FakeChain())
        tp = await trader.set_take_profit("APT", "15.00", "1", True)
        sl = await trader.set_stop_loss("APT", "10.00", "1", True)
        assert tp == {"success": True, "message": "Take profit set", "price": "15.00", "size": "1"}
        assert sl["message"] == "Stop loss set"


class TestPortfolioReads:
    @pytest.mark.asyncio()
    async def test_fetch_positions_scales_shares(self) -> None:
        trader = _trader(FakeChain({"get_user_shares": ["250000000"]}))
        [position] = await trader.fetch_positions()
        assert position["size"] == 2.5
        assert trader.has_open_position("APT") is True
        assert trader.get_position("APT")["size"] == 2.5

    @pytest.mark.asyncio()
    async def test_fetch_positions_empty_on_failure(self) -> None:
        trader = _trader(FakeChain(fail=ExternalCallFailed("down")))
        assert await trader.fetch_positions() == []
        assert trader.has_open_position("APT") is False

    @pytest.mark.asyncio()
    async def test_fetch_balance(self) -> None:
        chain = FakeChain()
        chain.resources["0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>"] = {
            "coin": {"value": "123450000"}
        }
        assert await _trader(chain).fetch_balance() == 1.2345

    @pytest.mark.asyncio()
    async def test_fetch_balance_zero_on_failure(self) -> None:
        assert await _trader(FakeChain()).fetch_balance() == 0

    @pytest.mark.asyncio()
    async def test_assets_and_lookup(self) -> None:
        trader = _trader(FakeChain())
        assert trader.get_asset("APT") is None
        [asset] = await trader.fetch_assets()
        assert trader.get_asset("APT") == asset

    @pytest.mark.asyncio()
    async def test_open_orders_filtered_and_paged(self) -> None:
        trader = _trader(FakeChain({"execute_vault_action": [True]}))
        await trader.place_limit_order("APT", False, "13.00", 1.0)
        sells = await trader.fetch_open_orders(side="SELL")
        assert sells
        assert {o["side"] for o in sells} == {"SELL"}
        assert any(o["type"] == "LIMIT" for o in sells if "type" in o)
        assert await trader.fetch_open_orders(page=5, size=10) == []
        assert trader.has_open_orders("APT") is True
        assert trader.has_open_orders("BTC") is False

    @pytest.mark.asyncio()
    async def test_venue_snapshot_replaced_not_accumulated(self) -> None:
        trader = _trader(FakeChain())
        for _ in range(3):
            await trader.fetch_open_orders()
        assert len(await trader.fetch_open_orders(size=100)) == 1

    @pytest.mark.asyncio()
    async def test_trade_history_associated_order(self) -> None:
        [trade] = await _trader(FakeChain()).fetch_trade_history(associated_order_id="apt_1_abc")
        assert trade["orderId"] == "apt_1_abc"

    @pytest.mark.asyncio()
    async def test_refresh_stamps_watermark(self) -> None:
        trader = _trader(FakeChain({"get_user_shares": ["0"]}))
        assert trader.last_update_time == 0
        result = await trader.refresh_all_data()
        assert result["success"] is True
        assert result["lastUpdateTime"] == trader.last_update_time > 0
