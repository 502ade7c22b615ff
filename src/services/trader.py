"""Trading adapter over the HyperFill vault on Aptos.

Order-producing operations assign an order id before touching the chain,
so a failed call still returns a traceable id next to the failure.
Order lifecycle tracked here: CREATED → ACKNOWLEDGED | FAILED, and
ACKNOWLEDGED → CANCELLED. Fills are the exchange's business.
"""

from __future__ import annotations

import asyncio
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog

from src.constants import APT_COIN_TYPE, OCTAS_PER_APT
from src.services.aptos_client import ChainClient

logger = structlog.get_logger()

_BASE36 = string.digits + string.ascii_lowercase

DEFAULT_ASSETS: tuple[dict[str, Any], ...] = (
    {
        "symbol": "APT",
        "indexToken": APT_COIN_TYPE,
        "name": "Aptos",
        "precision": 8,
        "minTradeSize": 0.1,
    },
)


class OrderState(StrEnum):
    created = "CREATED"
    acknowledged = "ACKNOWLEDGED"
    failed = "FAILED"
    cancelled = "CANCELLED"


_OPEN_STATES = frozenset({"ACTIVE", OrderState.acknowledged.value})


def generate_order_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"apt_{int(time.time() * 1000)}_{suffix}"


def to_octas(amount: float) -> str:
    return str(int(round(amount * OCTAS_PER_APT)))


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _page(items: list[Any], page: int, size: int) -> list[Any]:
    start = max(page, 0) * max(size, 0)
    return items[start:start + max(size, 0)]


@dataclass
class PortfolioCache:
    """Last-known assets, positions and orders.

    Each write replaces whole entries per key with no suspension in between,
    so concurrent refreshes race last-writer-wins but never leave a key
    half-written. last_update_time is the staleness watermark (epoch ms,
    0 = never refreshed).
    """

    assets: dict[str, dict[str, Any]] = field(default_factory=dict)
    positions: dict[str, dict[str, Any]] = field(default_factory=dict)
    orders: dict[str, dict[str, Any]] = field(default_factory=dict)
    take_profit: dict[str, dict[str, Any]] = field(default_factory=dict)
    stop_loss: dict[str, dict[str, Any]] = field(default_factory=dict)
    balance: float = 0.0
    last_update_time: int = 0

    def put_many(self, table: dict[str, dict[str, Any]], key: str, entries: list[dict]) -> None:
        for entry in entries:
            table[entry[key]] = dict(entry)

    def replace_venue_orders(self, entries: list[dict]) -> None:
        """Swap the venue-reported ACTIVE snapshot; locally tracked orders stay."""
        stale = [oid for oid, order in self.orders.items() if order.get("status") == "ACTIVE"]
        for order_id in stale:
            del self.orders[order_id]
        self.put_many(self.orders, "orderId", entries)

    def set_order_state(self, order_id: str, state: OrderState, **extra: Any) -> None:
        current = self.orders.get(order_id, {"orderId": order_id})
        self.orders[order_id] = {**current, **extra, "status": state.value, "updatedAt": _now_iso()}


class AptosTrader:
    """Executive trading adapter. One instance per account."""

    def __init__(
        self,
        chain: ChainClient,
        *,
        account: str,
        vault_address: str,
        default_leverage: float = 1.1,
        default_slippage: float = 5.0,
    ) -> None:
        self._chain = chain
        self.account = account
        self.vault_address = vault_address
        self.default_leverage = default_leverage
        self.default_slippage = default_slippage
        self._cache = PortfolioCache()

    @property
    def last_update_time(self) -> int:
        return self._cache.last_update_time

    def _vault_fn(self, name: str) -> str:
        return f"{self.vault_address}::hyperfill_vault::{name}"

    async def _submit_order(
        self, kind: str, asset: str, arguments: list[Any], **order_fields: Any
    ) -> dict[str, Any]:
        order_id = generate_order_id()
        self._cache.set_order_state(
            order_id, OrderState.created, asset=asset, type=kind, timestamp=_now_iso(), **order_fields
        )
        try:
            result = await self._chain.view(self._vault_fn("execute_vault_action"), arguments)
        except Exception as e:
            self._cache.set_order_state(order_id, OrderState.failed, error=str(e))
            logger.warning("order_failed", order_id=order_id, kind=kind, asset=asset, error=str(e))
            return {"response": {"success": False, "error": str(e)}, "orderId": order_id}

        self._cache.set_order_state(order_id, OrderState.acknowledged)
        logger.info("order_acknowledged", order_id=order_id, kind=kind, asset=asset)
        return {"response": {"success": True, "result": result}, "orderId": order_id}

    async def _vault_call(self, name: str, arguments: list[Any]) -> dict[str, Any]:
        try:
            result = await self._chain.view(self._vault_fn(name), arguments)
        except Exception as e:
            logger.warning("vault_call_failed", function=name, error=str(e))
            return {"success": False, "error": str(e)}
        return {"success": True, "result": result}

    # ------------------------------------------------------------------
    # Executive operations
    # ------------------------------------------------------------------

    async def place_limit_order(
        self,
        asset: str,
        is_buy: bool,
        price: str,
        size: float,
        leverage: float | None = None,
        reduce_only: bool = False,
    ) -> dict[str, Any]:
        return await self._submit_order(
            "LIMIT",
            asset,
            [self.vault_address, "allocate", to_octas(size), self.account],
            side="BUY" if is_buy else "SELL",
            price=price,
            size=size,
            leverage=leverage or self.default_leverage,
            reduceOnly=reduce_only,
        )

    async def place_market_order(
        self,
        asset: str,
        is_buy: bool,
        size: float,
        leverage: float | None = None,
        slippage: float | None = None,
        reduce_only: bool = False,
    ) -> dict[str, Any]:
        return await self._submit_order(
            "MARKET",
            asset,
            [self.vault_address, "allocate", to_octas(size), self.account],
            side="BUY" if is_buy else "SELL",
            size=size,
            leverage=leverage or self.default_leverage,
            slippage=self.default_slippage if slippage is None else slippage,
            reduceOnly=reduce_only,
        )

    async def cancel_order(self, order_id: str) -> dict[str, Any]:
        result = await self._vault_call("get_vault_stats", [self.vault_address])
        if result["success"] and self._cache.orders.get(order_id, {}).get("status") in _OPEN_STATES:
            self._cache.set_order_state(order_id, OrderState.cancelled)
        return result

    async def close_position(
        self, asset: str, close_price: str, quantity: float | None = None
    ) -> dict[str, Any]:
        amount = quantity or 1.0
        return await self._submit_order(
            "CLOSE",
            asset,
            [self.vault_address, "return_funds", to_octas(amount)],
            price=close_price,
            size=amount,
        )

    async def add_collateral(self, asset: str, collateral: float, is_buy: bool) -> dict[str, Any]:
        return await self._vault_call(
            "deposit_liquidity", [self.vault_address, to_octas(collateral)]
        )

    async def remove_collateral(
        self, asset: str, collateral: float, is_buy: bool
    ) -> dict[str, Any]:
        return await self._vault_call("withdraw_profits", [self.vault_address])

    async def set_take_profit(
        self, asset: str, take_profit_price: str, size: str, is_buy: bool
    ) -> dict[str, Any]:
        self._cache.take_profit[asset] = {"price": take_profit_price, "size": size, "isBuy": is_buy}
        return {"success": True, "message": "Take profit set", "price": take_profit_price, "size": size}

    async def set_stop_loss(
        self, asset: str, stop_loss_price: str, size: str, is_buy: bool
    ) -> dict[str, Any]:
        self._cache.stop_loss[asset] = {"price": stop_loss_price, "size": size, "isBuy": is_buy}
        return {"success": True, "message": "Stop loss set", "price": stop_loss_price, "size": size}

    # ------------------------------------------------------------------
    # Portfolio reads
    # ------------------------------------------------------------------

    async def fetch_assets(self) -> list[dict[str, Any]]:
        assets = [dict(asset) for asset in DEFAULT_ASSETS]
        self._cache.put_many(self._cache.assets, "symbol", assets)
        return assets

    async def fetch_open_orders(
        self, asset: str | None = None, side: str | None = None, page: int = 0, size: int = 10
    ) -> list[dict[str, Any]]:
        # Placeholder book entry until the vault exposes an order index.
        venue_orders = [
            {
                "orderId": generate_order_id(),
                "asset": asset or "APT",
                "side": side or "BUY",
                "price": "12.50",
                "size": 1.0,
                "filled": 0,
                "status": "ACTIVE",
                "timestamp": _now_iso(),
            }
        ]
        self._cache.replace_venue_orders(venue_orders)
        orders = [
            order
            for order in self._cache.orders.values()
            if order.get("status") in _OPEN_STATES
            and (asset is None or order.get("asset") == asset)
            and (side is None or order.get("side") == side)
        ]
        return _page(orders, page, size)

    async def fetch_positions(self, page: int = 0, size: int = 10) -> list[dict[str, Any]]:
        try:
            shares = await self._chain.view(
                self._vault_fn("get_user_shares"), [self.vault_address, self.account]
            )
            position_size = int(shares[0]) / OCTAS_PER_APT
        except Exception as e:
            logger.warning("positions_fetch_failed", error=str(e))
            return []

        positions = [
            {
                "asset": "APT",
                "size": position_size,
                "entryPrice": "12.00",
                "markPrice": "12.50",
                "pnl": 0.5,
                "side": "LONG",
                "timestamp": _now_iso(),
            }
        ]
        self._cache.put_many(self._cache.positions, "asset", positions)
        return _page(positions, page, size)

    async def fetch_balance(self) -> float:
        try:
            resource = await self._chain.get_account_resource(
                self.account, f"0x1::coin::CoinStore<{APT_COIN_TYPE}>"
            )
            self._cache.balance = int(resource["coin"]["value"]) / OCTAS_PER_APT
        except Exception as e:
            logger.warning("balance_fetch_failed", error=str(e))
            return 0
        return self._cache.balance

    async def fetch_trade_history(
        self, page: int = 0, size: int = 10, associated_order_id: str | None = None
    ) -> list[dict[str, Any]]:
        trades = [
            {
                "tradeId": generate_order_id(),
                "orderId": associated_order_id or generate_order_id(),
                "asset": "APT",
                "side": "BUY",
                "price": "12.25",
                "size": 1.0,
                "fee": 0.001,
                "timestamp": _now_iso(),
            }
        ]
        return _page(trades, page, size)

    async def get_order_status(self, order_ids: list[str]) -> list[dict[str, Any]]:
        return [
            dict(self._cache.orders[order_id])
            if order_id in self._cache.orders
            else {"orderId": order_id, "status": "NOT_FOUND"}
            for order_id in order_ids
        ]

    def get_asset(self, symbol: str) -> dict[str, Any] | None:
        return self._cache.assets.get(symbol)

    def get_position(self, asset: str) -> dict[str, Any] | None:
        return self._cache.positions.get(asset)

    def has_open_position(self, asset: str) -> bool:
        position = self._cache.positions.get(asset)
        return bool(position and position.get("size", 0) > 0)

    def has_open_orders(self, asset: str | None = None) -> bool:
        open_orders = [o for o in self._cache.orders.values() if o.get("status") in _OPEN_STATES]
        if asset is None:
            return bool(open_orders)
        return any(order.get("asset") == asset for order in open_orders)

    async def refresh_all_data(self) -> dict[str, Any]:
        await asyncio.gather(
            self.fetch_assets(),
            self.fetch_open_orders(),
            self.fetch_positions(),
            self.fetch_balance(),
        )
        self._cache.last_update_time = int(time.time() * 1000)
        logger.info("portfolio_refreshed", last_update_time=self._cache.last_update_time)
        return {"success": True, "timestamp": _now_iso(), "lastUpdateTime": self._cache.last_update_time}
