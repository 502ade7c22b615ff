from __future__ import annotations

from src.services.vault import VAULT_ACTIONS, VaultClient
from src.tools.base import ToolDefinition, object_schema
from src.tools.registry import ToolRegistry

GET_VAULT_STATS = ToolDefinition(
    name="get_vault_stats",
    description="Get current vault statistics including total assets, shares, and user balances",
    input_schema=object_schema(
        {
            "user_address": {
                "type": "string",
                "description": "User address to get specific stats for (optional)",
            }
        }
    ),
)

GET_MARKET_DATA = ToolDefinition(
    name="get_market_data",
    description="Get current market data for APT and other tokens",
    input_schema=object_schema(
        {"token_address": {"type": "string", "description": "Token address to get price for"}}
    ),
)

CHECK_ARBITRAGE_OPPORTUNITIES = ToolDefinition(
    name="check_arbitrage_opportunities",
    description="Check for arbitrage opportunities across different DEXs",
    input_schema=object_schema(
        {
            "min_profit_threshold": {
                "type": "number",
                "description": "Minimum profit threshold in APT",
                "default": 0.01,
            }
        }
    ),
)

EXECUTE_VAULT_ACTION = ToolDefinition(
    name="execute_vault_action",
    description="Execute actions on the vault (deposit, withdraw, allocate funds)",
    input_schema=object_schema(
        {
            "action": {
                "type": "string",
                "enum": list(VAULT_ACTIONS),
                "description": "Action to execute",
            },
            "amount": {"type": "string", "description": "Amount in APT (for relevant actions)"},
            "recipient": {
                "type": "string",
                "description": "Recipient address (for allocate action)",
            },
        },
        ["action"],
    ),
)


def register_vault_tools(registry: ToolRegistry, vault: VaultClient) -> None:
    registry.register(
        GET_VAULT_STATS, lambda args, session: vault.get_vault_stats(args.get("user_address"))
    )
    registry.register(
        GET_MARKET_DATA,
        lambda args, session: (
            vault.get_market_data(args["token_address"])
            if args.get("token_address")
            else vault.get_market_data()
        ),
    )
    registry.register(
        CHECK_ARBITRAGE_OPPORTUNITIES,
        lambda args, session: vault.check_arbitrage_opportunities(
            args.get("min_profit_threshold") or 0.01
        ),
    )
    registry.register(
        EXECUTE_VAULT_ACTION,
        lambda args, session: vault.execute_vault_action(
            args["action"], args.get("amount"), args.get("recipient")
        ),
    )
