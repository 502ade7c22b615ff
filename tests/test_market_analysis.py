"""Tests for market analytics, the synthetic order book and the market directory."""

from __future__ import annotations

import random
from unittest.mock import MagicMock, patch

import pytest
import requests

from src.infra.errors import ExternalCallFailed, NotFound
from src.services.market import (
    HyperFillMarketClient,
    MarketManager,
    MarketSnapshot,
    PriceFeed,
    analyze_liquidity,
    analyze_sentiment,
    analyze_trend,
    calculate_momentum,
    calculate_resistance_levels,
    calculate_support_levels,
    calculate_volatility,
    synthesize_order_book,
)
from tests.fakes import FakeFeed


def _snap(change: float, price: float = 10.0) -> MarketSnapshot:
    return MarketSnapshot(price=price, price_change_24h=change)


class TestPureAnalytics:
    @pytest.mark.parametrize(
        ("change", "trend"),
        [(3.0, "bullish"), (-3.0, "bearish"), (0.5, "neutral"), (2.0, "neutral"), (-2.0, "neutral")],
    )
    def test_trend(self, change, trend) -> None:
        assert analyze_trend(_snap(change)) == trend

    @pytest.mark.parametrize(
        ("change", "sentiment"),
        [
            (6, "very_positive"),
            (3, "positive"),
            (0, "neutral"),
            (-3, "negative"),
            (-6, "very_negative"),
        ],
    )
    def test_sentiment(self, change, sentiment) -> None:
        assert analyze_sentiment(_snap(change)) == sentiment

    def test_volatility_and_momentum(self) -> None:
        assert calculate_volatility(_snap(-4.0)) == 0.04
        assert calculate_momentum(_snap(-4.0)) == -0.04

    def test_support_and_resistance(self) -> None:
        assert calculate_support_levels(_snap(0, 100.0)) == pytest.approx([95.0, 90.0, 85.0])
        assert calculate_resistance_levels(_snap(0, 100.0)) == pytest.approx([105.0, 110.0, 115.0])


class TestOrderBook:
    @pytest.mark.parametrize("seed", range(10))
    def test_levels_sorted(self, seed) -> None:
        book = synthesize_order_book(_snap(1.0, 12.5), random.Random(seed))
        bid_prices = [float(price) for price, _ in book["bids"]]
        ask_prices = [float(price) for price, _ in book["asks"]]
        assert len(bid_prices) == len(ask_prices) == 5
        assert all(a > b for a, b in zip(bid_prices, bid_prices[1:]))
        assert all(a < b for a, b in zip(ask_prices, ask_prices[1:]))
        assert max(bid_prices) < min(ask_prices)

    @pytest.mark.parametrize("price", [0.05, 0.0012, 0.00003])
    def test_low_prices_keep_levels_distinct(self, price, seeded_rng) -> None:
        book = synthesize_order_book(_snap(0, price), seeded_rng)
        bid_prices = [float(p) for p, _ in book["bids"]]
        ask_prices = [float(p) for p, _ in book["asks"]]
        assert all(a > b for a, b in zip(bid_prices, bid_prices[1:]))
        assert all(a < b for a, b in zip(ask_prices, ask_prices[1:]))

    def test_low_price_precision(self, seeded_rng) -> None:
        book = synthesize_order_book(_snap(0, 0.05), seeded_rng)
        assert [price for price, _ in book["bids"]][:2] == ["0.049750", "0.049700"]

    def test_formatting(self, seeded_rng) -> None:
        book = synthesize_order_book(_snap(0, 12.5), seeded_rng)
        price, volume = book["bids"][0]
        assert price == "12.4375"
        assert len(volume.split(".")[1]) == 2
        assert float(volume) >= 0.1

    def test_liquidity(self) -> None:
        book = {"bids": [["10", "2"]], "asks": [["10", "1"]]}
        liquidity = analyze_liquidity(book)
        assert liquidity["bid_depth"] == 20
        assert liquidity["ask_depth"] == 10
        assert liquidity["imbalance"] == pytest.approx(1 / 3)

    def test_liquidity_empty_book(self) -> None:
        assert analyze_liquidity({"bids": [], "asks": []})["imbalance"] == 0.0


class TestMarketClient:
    @pytest.mark.asyncio()
    async def test_market_data_from_feed(self) -> None:
        data = await HyperFillMarketClient(FakeFeed()).get_market_data()
        assert data["price"] == 10.0
        assert data["priceChange24h"] == 3.0
        assert "error" not in data

    @pytest.mark.asyncio()
    async def test_market_data_fallback(self) -> None:
        data = await HyperFillMarketClient(FakeFeed(error="Request timeout")).get_market_data()
        assert data["price"] == 12.50
        assert data["volume24h"] == 150_000_000
        assert data["marketCap"] == 5_000_000_000
        assert data["error"] == "Request timeout"

    @pytest.mark.asyncio()
    async def test_analysis_document(self) -> None:
        client = HyperFillMarketClient(FakeFeed(), rng=random.Random(1))
        analysis = await client.get_market_analysis()
        assert analysis["trend"] == "bullish"
        assert analysis["market_sentiment"] == "positive"
        assert set(analysis["liquidity_analysis"]) == {
            "bid_depth",
            "ask_depth",
            "total_depth",
            "imbalance",
        }

    @pytest.mark.asyncio()
    async def test_single_metric_tools(self) -> None:
        client = HyperFillMarketClient(FakeFeed())
        assert (await client.analyze_trend())["trend"] == "bullish"
        assert (await client.calculate_volatility())["volatility"] == 0.03
        assert (await client.analyze_sentiment())["sentiment"] == "positive"


class TestMarketManager:
    def test_market_list(self) -> None:
        manager = MarketManager.with_hyperfill(FakeFeed())
        assert manager.get_market_list() == [{"marketName": "hyperfill", "id": "123"}]

    def test_unknown_market(self) -> None:
        manager = MarketManager.with_hyperfill(FakeFeed())
        with pytest.raises(NotFound, match="Market client not found for binance"):
            manager.get_market_client("binance")

    def test_client_cached(self) -> None:
        manager = MarketManager.with_hyperfill(FakeFeed())
        assert manager.get_market_client("hyperfill") is manager.get_market_client("hyperfill")


class TestPriceFeed:
    @pytest.mark.asyncio()
    async def test_parses_coingecko_payload(self) -> None:
        response = MagicMock()
        response.json.return_value = {
            "aptos": {"usd": 9.5, "usd_24h_change": -1.2, "usd_24h_vol": 10, "usd_market_cap": 20}
        }
        with patch("src.services.market.requests.get", return_value=response) as get:
            quote = await PriceFeed("https://example.test/price").fetch_quote()
        assert quote.price_usd == 9.5
        assert quote.price_change_24h == -1.2
        assert get.call_args.kwargs["timeout"] == 5.0

    @pytest.mark.asyncio()
    async def test_timeout(self) -> None:
        with patch("src.services.market.requests.get", side_effect=requests.Timeout()):
            with pytest.raises(ExternalCallFailed, match="Request timeout"):
                await PriceFeed("https://example.test/price").fetch_quote()

    @pytest.mark.asyncio()
    async def test_invalid_payload(self) -> None:
        response = MagicMock()
        response.json.return_value = {"bitcoin": {"usd": 1}}
        with patch("src.services.market.requests.get", return_value=response):
            with pytest.raises(ExternalCallFailed, match="Invalid API response"):
                await PriceFeed("https://example.test/price").fetch_quote()
