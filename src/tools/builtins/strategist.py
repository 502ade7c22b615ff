from __future__ import annotations

from src.agent.decision_engine import DecisionEngine
from src.tools.base import ToolDefinition, object_schema
from src.tools.registry import ToolRegistry

ANALYZE_MARKET_CONDITIONS = ToolDefinition(
    name="analyze_market_conditions",
    description="Produce a trading decision from market data, vault stats and current positions",
    input_schema=object_schema(
        {
            "marketData": {"type": "object", "description": "Market data snapshot"},
            "vaultStats": {"type": "object", "description": "Vault statistics"},
            "positions": {
                "type": "array",
                "items": {"type": "object"},
                "description": "Current positions",
            },
        },
        ["marketData", "vaultStats"],
    ),
)

EVALUATE_RISK_PARAMETERS = ToolDefinition(
    name="evaluate_risk_parameters",
    description="Recommend risk parameters for a position",
    input_schema=object_schema(
        {
            "position": {"type": "object", "description": "Position to evaluate"},
            "marketVolatility": {"type": "number", "description": "Market volatility in percent"},
            "vaultExposure": {"type": "number", "description": "Vault exposure in percent"},
        },
        ["position", "marketVolatility", "vaultExposure"],
    ),
)

GENERATE_EXECUTION_PLAN = ToolDefinition(
    name="generate_execution_plan",
    description="Generate a step-by-step execution plan for a trading decision",
    input_schema=object_schema(
        {
            "decision": {"type": "object", "description": "Trading decision to execute"},
            "currentPositions": {
                "type": "array",
                "items": {"type": "object"},
                "description": "Current positions",
            },
            "availableLiquidity": {"type": "number", "description": "Available liquidity in APT"},
        },
        ["decision", "availableLiquidity"],
    ),
)


def register_strategist_tools(registry: ToolRegistry, engine: DecisionEngine) -> None:
    """Decision-engine tools. Each returns a complete document, never an error."""
    registry.register(
        ANALYZE_MARKET_CONDITIONS,
        lambda args, session: engine.analyze_market_conditions(
            args["marketData"], args["vaultStats"], args.get("positions") or []
        ),
    )
    registry.register(
        EVALUATE_RISK_PARAMETERS,
        lambda args, session: engine.evaluate_risk_parameters(
            args["position"], args["marketVolatility"], args["vaultExposure"]
        ),
    )
    registry.register(
        GENERATE_EXECUTION_PLAN,
        lambda args, session: engine.generate_execution_plan(
            args["decision"], args.get("currentPositions") or [], args["availableLiquidity"]
        ),
    )
