"""Market-data adapter: one price snapshot in, derived analytics out.

Every derived metric is a pure function of the snapshot. The synthetic
order book is the only place randomness enters, and only in level volume.
"""

from __future__ import annotations

import asyncio
import math
import random
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import requests
import structlog

from src.infra.errors import ExternalCallFailed, NotFound

logger = structlog.get_logger()

ORDER_BOOK_LEVELS = 5
ORDER_BOOK_SPREAD_PCT = 0.5
ORDER_BOOK_LEVEL_STEP = 0.001


@dataclass(frozen=True)
class PriceQuote:
    price_usd: float
    price_change_24h: float
    volume_24h: float
    market_cap: float


class PriceFeed:
    """CoinGecko simple-price fetch, bounded by a timeout."""

    def __init__(
        self,
        api_url: str,
        *,
        coin_id: str = "aptos",
        timeout_s: float = 5.0,
        user_agent: str = "HyperFill-MarketAnalyzer/1.0.0",
    ) -> None:
        self._api_url = api_url
        self._coin_id = coin_id
        self._timeout_s = timeout_s
        self._headers = {"User-Agent": user_agent}

    async def fetch_quote(self) -> PriceQuote:
        params = {
            "ids": self._coin_id,
            "vs_currencies": "usd",
            "include_24hr_change": "true",
            "include_24hr_vol": "true",
            "include_market_cap": "true",
        }
        try:
            response = await asyncio.to_thread(
                requests.get,
                self._api_url,
                params=params,
                headers=self._headers,
                timeout=self._timeout_s,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise ExternalCallFailed("Request timeout") from e
        except (requests.RequestException, ValueError) as e:
            raise ExternalCallFailed(f"Price fetch failed: {e}") from e

        coin = payload.get(self._coin_id) if isinstance(payload, dict) else None
        if not isinstance(coin, dict) or "usd" not in coin:
            raise ExternalCallFailed("Invalid API response")
        return PriceQuote(
            price_usd=float(coin["usd"]),
            price_change_24h=float(coin.get("usd_24h_change") or 0),
            volume_24h=float(coin.get("usd_24h_vol") or 0),
            market_cap=float(coin.get("usd_market_cap") or 0),
        )


@dataclass(frozen=True)
class MarketSnapshot:
    price: float
    price_change_24h: float
    volume_24h: float = 0.0
    market_cap: float = 0.0
    timestamp: str = ""
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "price": self.price,
            "volume24h": self.volume_24h,
            "priceChange24h": self.price_change_24h,
            "marketCap": self.market_cap,
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def fallback_snapshot(error: str) -> MarketSnapshot:
    return MarketSnapshot(
        price=12.50,
        price_change_24h=2.5,
        volume_24h=150_000_000,
        market_cap=5_000_000_000,
        timestamp=_now_iso(),
        error=error,
    )


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# ---------------------------------------------------------------------------
# Pure analytics
# ---------------------------------------------------------------------------


def analyze_trend(snapshot: MarketSnapshot) -> str:
    if snapshot.price_change_24h > 2:
        return "bullish"
    if snapshot.price_change_24h < -2:
        return "bearish"
    return "neutral"


def calculate_volatility(snapshot: MarketSnapshot) -> float:
    return abs(snapshot.price_change_24h) / 100


def calculate_momentum(snapshot: MarketSnapshot) -> float:
    return snapshot.price_change_24h / 100


def calculate_support_levels(snapshot: MarketSnapshot) -> list[float]:
    return [snapshot.price * factor for factor in (0.95, 0.90, 0.85)]


def calculate_resistance_levels(snapshot: MarketSnapshot) -> list[float]:
    return [snapshot.price * factor for factor in (1.05, 1.10, 1.15)]


def analyze_sentiment(snapshot: MarketSnapshot) -> str:
    change = snapshot.price_change_24h
    if change > 5:
        return "very_positive"
    if change > 2:
        return "positive"
    if change < -5:
        return "very_negative"
    if change < -2:
        return "negative"
    return "neutral"


def _price_decimals(price: float) -> int:
    """Decimals needed to keep adjacent book levels distinct; never fewer than 4."""
    gap = abs(price) * ORDER_BOOK_LEVEL_STEP * (1 - ORDER_BOOK_SPREAD_PCT / 100)
    if gap <= 0:
        return 4
    return max(4, math.ceil(-math.log10(gap)) + 1)


def synthesize_order_book(
    snapshot: MarketSnapshot, rng: random.Random | None = None
) -> dict[str, Any]:
    """Build a five-level book around the snapshot price.

    Bids are strictly descending and asks strictly ascending by price;
    only the level volume is random.
    """
    rng = rng or random.Random()
    bid_price = snapshot.price * (1 - ORDER_BOOK_SPREAD_PCT / 100)
    ask_price = snapshot.price * (1 + ORDER_BOOK_SPREAD_PCT / 100)

    decimals = _price_decimals(snapshot.price)
    bids: list[list[str]] = []
    asks: list[list[str]] = []
    for level in range(ORDER_BOOK_LEVELS):
        volume = f"{max(0.1, rng.random() * 10):.2f}"
        bids.append([f"{bid_price * (1 - level * ORDER_BOOK_LEVEL_STEP):.{decimals}f}", volume])
        asks.append([f"{ask_price * (1 + level * ORDER_BOOK_LEVEL_STEP):.{decimals}f}", volume])

    bids.sort(key=lambda level: float(level[0]), reverse=True)
    asks.sort(key=lambda level: float(level[0]))
    return {"bids": bids, "asks": asks, "timestamp": _now_iso()}


def analyze_liquidity(order_book: dict[str, Any]) -> dict[str, float]:
    bid_depth = sum(float(price) * float(volume) for price, volume in order_book["bids"])
    ask_depth = sum(float(price) * float(volume) for price, volume in order_book["asks"])
    total = bid_depth + ask_depth
    return {
        "bid_depth": bid_depth,
        "ask_depth": ask_depth,
        "total_depth": total,
        "imbalance": (bid_depth - ask_depth) / total if total else 0.0,
    }


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class HyperFillMarketClient:
    """Market client for the HyperFill APT market."""

    def __init__(self, feed: PriceFeed, *, rng: random.Random | None = None) -> None:
        self._feed = feed
        self._rng = rng or random.Random()

    async def snapshot(self) -> MarketSnapshot:
        try:
            quote = await self._feed.fetch_quote()
        except ExternalCallFailed as e:
            logger.warning("price_fetch_fallback", error=str(e))
            return fallback_snapshot(str(e))
        return MarketSnapshot(
            price=quote.price_usd,
            price_change_24h=quote.price_change_24h,
            volume_24h=quote.volume_24h,
            market_cap=quote.market_cap,
            timestamp=_now_iso(),
        )

    async def get_market_data(self) -> dict[str, Any]:
        return (await self.snapshot()).to_dict()

    async def get_order_book(self) -> dict[str, Any]:
        return synthesize_order_book(await self.snapshot(), self._rng)

    async def get_market_analysis(self) -> dict[str, Any]:
        snapshot = await self.snapshot()
        order_book = synthesize_order_book(snapshot, self._rng)
        return {
            "trend": analyze_trend(snapshot),
            "volatility": calculate_volatility(snapshot),
            "momentum": calculate_momentum(snapshot),
            "support_levels": calculate_support_levels(snapshot),
            "resistance_levels": calculate_resistance_levels(snapshot),
            "market_sentiment": analyze_sentiment(snapshot),
            "liquidity_analysis": analyze_liquidity(order_book),
            "timestamp": _now_iso(),
        }

    async def analyze_trend(self) -> dict[str, Any]:
        return {"trend": analyze_trend(await self.snapshot()), "timestamp": _now_iso()}

    async def calculate_volatility(self) -> dict[str, Any]:
        return {"volatility": calculate_volatility(await self.snapshot()), "timestamp": _now_iso()}

    async def analyze_sentiment(self) -> dict[str, Any]:
        return {"sentiment": analyze_sentiment(await self.snapshot()), "timestamp": _now_iso()}


class MarketManager:
    """Directory of supported markets and their clients."""

    def __init__(self, clients: dict[str, HyperFillMarketClient], market_ids: dict[str, str]) -> None:
        self._clients = dict(clients)
        self._market_ids = dict(market_ids)

    @classmethod
    def with_hyperfill(cls, feed: PriceFeed) -> MarketManager:
        return cls({"hyperfill": HyperFillMarketClient(feed)}, {"hyperfill": "123"})

    def get_market_list(self) -> list[dict[str, str]]:
        return [{"marketName": name, "id": self._market_ids.get(name, name)} for name in self._clients]

    def get_market_client(self, market_name: str) -> HyperFillMarketClient:
        client = self._clients.get(market_name)
        if client is None:
            raise NotFound(f"Market client not found for {market_name}")
        return client
