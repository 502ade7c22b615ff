from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from src.services.market import HyperFillMarketClient, MarketManager
from src.tools.base import ToolDefinition, object_schema
from src.tools.registry import ToolRegistry

_MARKET_NAME = object_schema(
    {"marketName": {"type": "string", "description": "Market name"}}, ["marketName"]
)

# Per-market tools: (name, description, client method)
_MARKET_TOOLS: tuple[tuple[str, str, Callable[[HyperFillMarketClient], Awaitable[Any]]], ...] = (
    (
        "get_market_data",
        "Get real-time market data for a specific market",
        HyperFillMarketClient.get_market_data,
    ),
    (
        "get_order_book",
        "Get order book data for a specific market",
        HyperFillMarketClient.get_order_book,
    ),
    (
        "get_market_analysis",
        "Get comprehensive market analysis including trends, volatility, and sentiment",
        HyperFillMarketClient.get_market_analysis,
    ),
    (
        "analyze_trend",
        "Analyze market trend for a specific market",
        HyperFillMarketClient.analyze_trend,
    ),
    (
        "calculate_volatility",
        "Calculate market volatility metrics",
        HyperFillMarketClient.calculate_volatility,
    ),
    (
        "analyze_sentiment",
        "Analyze market sentiment indicators",
        HyperFillMarketClient.analyze_sentiment,
    ),
)

GET_MARKET_LIST = ToolDefinition(
    name="get_market_list",
    description="Get list of available markets",
    input_schema=object_schema(),
)


def _market_handler(manager: MarketManager, method):
    async def handler(args: dict, session) -> Any:
        client = manager.get_market_client(args["marketName"])
        return await method(client)

    return handler


def register_analyzer_tools(registry: ToolRegistry, manager: MarketManager) -> None:
    """Market-data tools resolved through the market directory."""
    registry.register(GET_MARKET_LIST, lambda args, session: manager.get_market_list())
    for name, description, method in _MARKET_TOOLS:
        registry.register(
            ToolDefinition(name=name, description=description, input_schema=_MARKET_NAME),
            _market_handler(manager, method),
        )
