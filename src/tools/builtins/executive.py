from __future__ import annotations

from src.services.trader import AptosTrader
from src.tools.base import ToolDefinition, object_schema
from src.tools.registry import ToolRegistry

_ASSET = {"type": "string", "description": "Asset symbol"}
_IS_BUY = {"type": "boolean", "description": "True for buy, false for sell"}
_SIDE = {"type": "boolean", "description": "Position side"}

PLACE_LIMIT_ORDER = ToolDefinition(
    name="place_limit_order",
    description="Place a limit order for a specific asset",
    input_schema=object_schema(
        {
            "asset": _ASSET,
            "isBuy": _IS_BUY,
            "price": {"type": "string", "description": "Order price"},
            "size": {"type": "number", "description": "Order size"},
            "leverage": {"type": "number", "description": "Leverage (optional)"},
            "reduceOnly": {"type": "boolean", "description": "Reduce only flag (optional)"},
        },
        ["asset", "isBuy", "price", "size"],
    ),
)

PLACE_MARKET_ORDER = ToolDefinition(
    name="place_market_order",
    description="Place a market order for a specific asset",
    input_schema=object_schema(
        {
            "asset": _ASSET,
            "isBuy": _IS_BUY,
            "size": {"type": "number", "description": "Order size"},
            "leverage": {"type": "number", "description": "Leverage (optional)"},
            "slippage": {"type": "number", "description": "Slippage tolerance (optional)"},
            "reduceOnly": {"type": "boolean", "description": "Reduce only flag (optional)"},
        },
        ["asset", "isBuy", "size"],
    ),
)

CANCEL_ORDER = ToolDefinition(
    name="cancel_order",
    description="Cancel an existing order",
    input_schema=object_schema(
        {"orderId": {"type": "string", "description": "Order ID to cancel"}},
        ["orderId"],
    ),
)

CLOSE_POSITION = ToolDefinition(
    name="close_position",
    description="Close an existing position",
    input_schema=object_schema(
        {
            "asset": _ASSET,
            "closePrice": {"type": "string", "description": "Close price"},
            "quantity": {"type": "number", "description": "Quantity to close (optional)"},
        },
        ["asset", "closePrice"],
    ),
)

ADD_COLLATERAL = ToolDefinition(
    name="add_collateral",
    description="Add collateral to a position",
    input_schema=object_schema(
        {
            "asset": _ASSET,
            "collateral": {"type": "number", "description": "Collateral amount"},
            "isBuy": _SIDE,
        },
        ["asset", "collateral", "isBuy"],
    ),
)

REMOVE_COLLATERAL = ToolDefinition(
    name="remove_collateral",
    description="Remove collateral from a position",
    input_schema=object_schema(
        {
            "asset": _ASSET,
            "collateral": {"type": "number", "description": "Collateral amount"},
            "isBuy": _SIDE,
        },
        ["asset", "collateral", "isBuy"],
    ),
)

SET_TAKE_PROFIT = ToolDefinition(
    name="set_take_profit",
    description="Set take profit for a position",
    input_schema=object_schema(
        {
            "asset": _ASSET,
            "takeProfitPrice": {"type": "string", "description": "Take profit price"},
            "size": {"type": "string", "description": "Position size"},
            "isBuy": _SIDE,
        },
        ["asset", "takeProfitPrice", "size", "isBuy"],
    ),
)

SET_STOP_LOSS = ToolDefinition(
    name="set_stop_loss",
    description="Set stop loss for a position",
    input_schema=object_schema(
        {
            "asset": _ASSET,
            "stopLossPrice": {"type": "string", "description": "Stop loss price"},
            "size": {"type": "string", "description": "Position size"},
            "isBuy": _SIDE,
        },
        ["asset", "stopLossPrice", "size", "isBuy"],
    ),
)


def register_executive_tools(registry: ToolRegistry, trader: AptosTrader) -> None:
    """Order placement and position management over the trading adapter."""

    registry.register(
        PLACE_LIMIT_ORDER,
        lambda args, session: trader.place_limit_order(
            args["asset"],
            args["isBuy"],
            args["price"],
            args["size"],
            leverage=args.get("leverage"),
            reduce_only=args.get("reduceOnly", False),
        ),
    )
    registry.register(
        PLACE_MARKET_ORDER,
        lambda args, session: trader.place_market_order(
            args["asset"],
            args["isBuy"],
            args["size"],
            leverage=args.get("leverage"),
            slippage=args.get("slippage"),
            reduce_only=args.get("reduceOnly", False),
        ),
    )
    registry.register(
        CANCEL_ORDER, lambda args, session: trader.cancel_order(args["orderId"])
    )
    registry.register(
        CLOSE_POSITION,
        lambda args, session: trader.close_position(
            args["asset"], args["closePrice"], args.get("quantity")
        ),
    )
    registry.register(
        ADD_COLLATERAL,
        lambda args, session: trader.add_collateral(
            args["asset"], args["collateral"], args["isBuy"]
        ),
    )
    registry.register(
        REMOVE_COLLATERAL,
        lambda args, session: trader.remove_collateral(
            args["asset"], args["collateral"], args["isBuy"]
        ),
    )
    registry.register(
        SET_TAKE_PROFIT,
        lambda args, session: trader.set_take_profit(
            args["asset"], args["takeProfitPrice"], args["size"], args["isBuy"]
        ),
    )
    registry.register(
        SET_STOP_LOSS,
        lambda args, session: trader.set_stop_loss(
            args["asset"], args["stopLossPrice"], args["size"], args["isBuy"]
        ),
    )
