"""Vault adapter: pool statistics, quote data and action simulation."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import structlog

from src.constants import APT_COIN_TYPE, OCTAS_PER_APT, SHARE_PRICE_SCALE
from src.infra.errors import ExternalCallFailed, InvalidArgument
from src.services.aptos_client import ChainClient
from src.services.market import PriceFeed

logger = structlog.get_logger()

VAULT_ACTIONS = ("deposit", "withdraw", "allocate", "return_funds")
QUOTE_SPREAD_PCT = 0.2

_STAT_VIEWS = (
    "get_total_assets",
    "get_total_shares",
    "get_share_price",
    "get_available_assets",
    "get_min_deposit",
    "is_paused",
)

# Placeholder until a DEX price source is wired in.
ARBITRAGE_CANDIDATES: tuple[dict[str, Any], ...] = (
    {
        "dex_pair": "PancakeSwap APT/USDC vs Thala APT/USDC",
        "price_difference": 0.15,
        "potential_profit_apt": 0.05,
        "volume_available": 100,
        "execution_complexity": "medium",
    },
    {
        "dex_pair": "Liquidswap APT/BTC vs Aries APT/BTC",
        "price_difference": 0.08,
        "potential_profit_apt": 0.02,
        "volume_available": 50,
        "execution_complexity": "high",
    },
)

FALLBACK_QUOTE: dict[str, Any] = {
    "price_usd": 12.50,
    "price_change_24h": 2.5,
    "volume_24h": 150_000_000,
    "market_cap": 5_000_000_000,
    "highest_bid": 12.49,
    "lowest_ask": 12.51,
    "spread_percentage": 0.16,
}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _scaled(raw: list[Any], scale: int, places: int) -> str:
    return f"{int(raw[0]) / scale:.{places}f}"


def _parse_amount(amount: str | None) -> float | None:
    if amount is None:
        return None
    try:
        return float(amount)
    except ValueError as e:
        raise InvalidArgument(f"amount must be numeric, got {amount!r}") from e


class VaultClient:
    """Adapter for the HyperFill vault module."""

    def __init__(self, chain: ChainClient, feed: PriceFeed, *, vault_address: str) -> None:
        self._chain = chain
        self._feed = feed
        self.vault_address = vault_address

    def _vault_fn(self, name: str) -> str:
        return f"{self.vault_address}::hyperfill_vault::{name}"

    async def get_vault_stats(self, user_address: str | None = None) -> dict[str, Any]:
        try:
            (
                total_assets,
                total_shares,
                share_price,
                available_assets,
                min_deposit,
                is_paused,
            ) = await asyncio.gather(
                *(self._chain.view(self._vault_fn(name), [self.vault_address]) for name in _STAT_VIEWS)
            )
            user_shares = None
            if user_address:
                raw_shares = await self._chain.view(
                    self._vault_fn("get_user_shares"), [self.vault_address, user_address]
                )
                user_shares = _scaled(raw_shares, OCTAS_PER_APT, 4)

            return {
                "total_assets_apt": _scaled(total_assets, OCTAS_PER_APT, 4),
                "total_shares": _scaled(total_shares, OCTAS_PER_APT, 4),
                "share_price_apt": _scaled(share_price, SHARE_PRICE_SCALE, 6),
                "available_assets_apt": _scaled(available_assets, OCTAS_PER_APT, 4),
                "min_deposit_apt": _scaled(min_deposit, OCTAS_PER_APT, 4),
                "is_paused": is_paused[0],
                "user_shares": user_shares,
                "timestamp": _now_iso(),
            }
        except (ExternalCallFailed, IndexError, TypeError, ValueError) as e:
            raise ExternalCallFailed(f"Failed to get vault stats: {e}") from e

    async def get_market_data(self, token_address: str = APT_COIN_TYPE) -> dict[str, Any]:
        try:
            quote = await self._feed.fetch_quote()
        except ExternalCallFailed as e:
            logger.warning("vault_quote_fallback", token_address=token_address, error=str(e))
            return {
                **FALLBACK_QUOTE,
                "token_address": token_address,
                "timestamp": _now_iso(),
                "note": "Using fallback data due to API error",
            }
        half_spread = QUOTE_SPREAD_PCT / 2 / 100
        return {
            "price_usd": quote.price_usd,
            "price_change_24h": quote.price_change_24h,
            "volume_24h": quote.volume_24h,
            "market_cap": quote.market_cap,
            "highest_bid": quote.price_usd * (1 - half_spread),
            "lowest_ask": quote.price_usd * (1 + half_spread),
            "spread_percentage": QUOTE_SPREAD_PCT,
            "token_address": token_address,
            "timestamp": _now_iso(),
        }

    async def check_arbitrage_opportunities(self, min_profit_threshold: float = 0.01) -> dict[str, Any]:
        viable = [
            dict(candidate)
            for candidate in ARBITRAGE_CANDIDATES
            if candidate["potential_profit_apt"] >= min_profit_threshold
        ]
        return {
            "min_profit_threshold": min_profit_threshold,
            "opportunities": viable,
            "total_opportunities": len(viable),
            "timestamp": _now_iso(),
        }

    async def execute_vault_action(
        self, action: str, amount: str | None = None, recipient: str | None = None
    ) -> dict[str, Any]:
        """Simulate a vault action. Nothing is signed or submitted."""
        if action not in VAULT_ACTIONS:
            raise InvalidArgument(f"Unknown vault action: {action}")
        value = _parse_amount(amount)

        if action == "deposit":
            result = {
                "action": "deposit",
                "amount_apt": amount,
                "estimated_shares": f"{value * 0.99:.4f}" if value is not None else "0",
                "gas_estimate": "0.001",
                "success_probability": "95%",
            }
        elif action == "withdraw":
            result = {
                "action": "withdraw",
                "estimated_apt": amount or "all_shares",
                "withdrawal_fee": "0.1%",
                "gas_estimate": "0.0015",
                "success_probability": "98%",
            }
        elif action == "allocate":
            result = {
                "action": "allocate_funds",
                "amount_apt": amount,
                "recipient": recipient,
                "gas_estimate": "0.002",
                "success_probability": "90%",
            }
        else:
            result = {
                "action": "return_funds",
                "amount_apt": amount,
                "gas_estimate": "0.0018",
                "success_probability": "95%",
            }

        logger.info("vault_action_simulated", action=action)
        return {
            **result,
            "timestamp": _now_iso(),
            "note": "This is a simulation. Actual execution requires transaction signing.",
        }
