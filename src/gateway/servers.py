"""Assemble the logical tool servers from settings.

Each server is one registry plus one adapter. The executive and pricer
servers share a single AptosTrader so reads see the orders placed.
"""

from __future__ import annotations

import structlog

from src.agent.decision_engine import DecisionEngine
from src.agent.model_client import ModelClient, OpenAICompatModelClient
from src.config.settings import Settings
from src.gateway.server import McpServer
from src.services.aptos_client import AptosRestClient, ChainClient
from src.services.market import MarketManager, PriceFeed
from src.services.trader import AptosTrader
from src.services.vault import VaultClient
from src.tools.builtins import (
    register_analyzer_tools,
    register_executive_tools,
    register_pricer_tools,
    register_strategist_tools,
    register_vault_tools,
)
from src.tools.registry import ToolRegistry

logger = structlog.get_logger()

SERVER_VERSION = "1.0.0"
DEFAULT_STDIO_SERVER = "vault"


def build_servers(
    settings: Settings,
    *,
    chain: ChainClient | None = None,
    feed: PriceFeed | None = None,
    model_client: ModelClient | None = None,
) -> dict[str, McpServer]:
    """Build every configured server, keyed by its mount name.

    Collaborators may be injected (tests); otherwise they are built from
    settings. The strategist is skipped when no LLM client is available.
    """
    if chain is None:
        chain = AptosRestClient(settings.aptos.node_url, timeout_s=settings.aptos.view_timeout_s)
    if feed is None:
        feed = PriceFeed(
            settings.market.price_api_url,
            coin_id=settings.market.coin_id,
            timeout_s=settings.market.fetch_timeout_s,
            user_agent=settings.market.user_agent,
        )
    if model_client is None and settings.llm.api_key:
        model_client = OpenAICompatModelClient(
            settings.llm.api_key, settings.llm.base_url, timeout_s=settings.llm.timeout_s
        )

    trader = AptosTrader(
        chain,
        account=settings.aptos.account_address,
        vault_address=settings.aptos.vault_address,
        default_leverage=settings.aptos.default_leverage,
        default_slippage=settings.aptos.default_slippage,
    )

    registries: dict[str, ToolRegistry] = {}

    registries["executive"] = ToolRegistry("executive")
    register_executive_tools(registries["executive"], trader)

    registries["pricer"] = ToolRegistry("pricer")
    register_pricer_tools(registries["pricer"], trader)

    registries["analyzer"] = ToolRegistry("analyzer")
    register_analyzer_tools(registries["analyzer"], MarketManager.with_hyperfill(feed))

    if model_client is not None:
        registries["strategist"] = ToolRegistry("strategist")
        register_strategist_tools(
            registries["strategist"],
            DecisionEngine(
                model_client,
                decision_model=settings.llm.decision_model,
                fast_model=settings.llm.fast_model,
            ),
        )
    else:
        logger.warning("strategist_disabled", reason="GROQ_API_KEY not set")

    registries["vault"] = ToolRegistry("vault")
    register_vault_tools(
        registries["vault"], VaultClient(chain, feed, vault_address=settings.aptos.vault_address)
    )

    servers = {
        name: McpServer(
            f"{name}-server",
            registry,
            version=SERVER_VERSION,
            protocol_version=settings.gateway.protocol_version,
        )
        for name, registry in registries.items()
    }
    logger.info(
        "servers_built",
        servers=list(servers),
        tool_counts={name: len(server.registry) for name, server in servers.items()},
    )
    return servers
