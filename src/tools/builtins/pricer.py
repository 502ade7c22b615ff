from __future__ import annotations

from src.services.trader import AptosTrader
from src.tools.base import ToolDefinition, object_schema
from src.tools.registry import ToolRegistry

_PAGE = {"type": "number", "description": "Page number (default: 0)"}
_PAGE_SIZE = {"type": "number", "description": "Page size (default: 10)"}
_ASSET = {"type": "string", "description": "Asset symbol"}

DEFINITIONS: dict[str, ToolDefinition] = {
    d.name: d
    for d in (
        ToolDefinition("fetch_assets", "Fetch available trading assets", object_schema()),
        ToolDefinition(
            "fetch_open_orders",
            "Fetch open orders for a specific asset",
            object_schema(
                {
                    "asset": {"type": "string", "description": "Asset symbol (optional)"},
                    "side": {
                        "type": "string",
                        "enum": ["BUY", "SELL"],
                        "description": "Order side (optional)",
                    },
                    "page": _PAGE,
                    "size": _PAGE_SIZE,
                }
            ),
        ),
        ToolDefinition(
            "fetch_positions",
            "Fetch current trading positions",
            object_schema({"page": _PAGE, "size": _PAGE_SIZE}),
        ),
        ToolDefinition("fetch_balance", "Fetch account balance", object_schema()),
        ToolDefinition(
            "fetch_trade_history",
            "Fetch trade history",
            object_schema(
                {
                    "page": _PAGE,
                    "size": _PAGE_SIZE,
                    "associatedOrderId": {
                        "type": "string",
                        "description": "Associated order ID (optional)",
                    },
                }
            ),
        ),
        ToolDefinition(
            "get_order_status",
            "Get status of specific orders",
            object_schema(
                {
                    "orderIds": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Array of order IDs",
                    }
                },
                ["orderIds"],
            ),
        ),
        ToolDefinition(
            "get_asset",
            "Get asset information by symbol",
            object_schema({"symbol": _ASSET}, ["symbol"]),
        ),
        ToolDefinition(
            "get_position",
            "Get position information for an asset",
            object_schema({"asset": _ASSET}, ["asset"]),
        ),
        ToolDefinition(
            "has_open_position",
            "Check if there's an open position for an asset",
            object_schema({"asset": _ASSET}, ["asset"]),
        ),
        ToolDefinition(
            "has_open_orders",
            "Check if there are open orders",
            object_schema({"asset": {"type": "string", "description": "Asset symbol (optional)"}}),
        ),
        ToolDefinition("refresh_all_data", "Refresh all portfolio data", object_schema()),
    )
}


def _paging(args: dict) -> tuple[int, int]:
    return int(args.get("page") or 0), int(args.get("size") or 10)


def register_pricer_tools(registry: ToolRegistry, trader: AptosTrader) -> None:
    """Portfolio reads. Shares the trader instance, and so its cache, with executive."""

    handlers = {
        "fetch_assets": lambda args, session: trader.fetch_assets(),
        "fetch_open_orders": lambda args, session: trader.fetch_open_orders(
            args.get("asset"), args.get("side"), *_paging(args)
        ),
        "fetch_positions": lambda args, session: trader.fetch_positions(*_paging(args)),
        "fetch_balance": lambda args, session: trader.fetch_balance(),
        "fetch_trade_history": lambda args, session: trader.fetch_trade_history(
            *_paging(args), associated_order_id=args.get("associatedOrderId")
        ),
        "get_order_status": lambda args, session: trader.get_order_status(args["orderIds"]),
        "get_asset": lambda args, session: trader.get_asset(args["symbol"]),
        "get_position": lambda args, session: trader.get_position(args["asset"]),
        "has_open_position": lambda args, session: trader.has_open_position(args["asset"]),
        "has_open_orders": lambda args, session: trader.has_open_orders(args.get("asset")),
        "refresh_all_data": lambda args, session: trader.refresh_all_data(),
    }
    for name, definition in DEFINITIONS.items():
        registry.register(definition, handlers[name])
