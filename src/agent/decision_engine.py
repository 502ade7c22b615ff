"""LLM-backed trading decisions with conservative fallbacks.

One completion per operation. Whatever goes wrong (network, empty
choices, non-JSON output, wrong shape) the caller receives a complete
document: either the validated model output or the documented fallback.
"""

from __future__ import annotations

import json
import re
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.agent.model_client import ModelClient

logger = structlog.get_logger()

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


class TradingDecision(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Literal["buy", "sell", "hold", "close_position", "allocate_liquidity"]
    asset: str = "APT"
    amount: float = 0
    price: float = 0
    confidence: float = Field(ge=0, le=1)
    reasoning: str = ""
    risk_level: Literal["low", "medium", "high"]
    expected_profit: float = 0
    stop_loss: float = 0
    take_profit: float = 0


class RiskParameters(BaseModel):
    model_config = ConfigDict(extra="ignore")

    position_size_adjustment: float = Field(ge=-1, le=1)
    stop_loss_distance: float
    take_profit_distance: float
    max_exposure_percent: float
    risk_score: float = Field(ge=1, le=10)
    recommendations: list[str] = Field(default_factory=list)


class ExecutionStep(BaseModel):
    model_config = ConfigDict(extra="ignore")

    order: int
    action: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    estimated_gas: float = 0
    success_probability: float = 0


class ExecutionPlan(BaseModel):
    model_config = ConfigDict(extra="ignore")

    steps: list[ExecutionStep]
    total_estimated_cost: float = 0
    execution_time_estimate: str = "Unknown"
    prerequisites: list[str] = Field(default_factory=list)
    risk_mitigation: list[str] = Field(default_factory=list)


FALLBACK_DECISION: dict[str, Any] = {
    "action": "hold",
    "asset": "APT",
    "amount": 0,
    "price": 0,
    "confidence": 0.1,
    "reasoning": "Error in AI analysis, defaulting to hold",
    "risk_level": "low",
    "expected_profit": 0,
    "stop_loss": 0,
    "take_profit": 0,
}

FALLBACK_RISK: dict[str, Any] = {
    "position_size_adjustment": 0,
    "stop_loss_distance": 5,
    "take_profit_distance": 10,
    "max_exposure_percent": 10,
    "risk_score": 5,
    "recommendations": ["Maintain current position", "Monitor market conditions"],
}

FALLBACK_PLAN: dict[str, Any] = {
    "steps": [],
    "total_estimated_cost": 0,
    "execution_time_estimate": "Unknown",
    "prerequisites": [],
    "risk_mitigation": [],
}

_DECISION_SYSTEM = (
    "You are an expert DeFi trading strategist for HyperFill on Aptos. Make data-driven "
    "decisions to maximize profits while managing risk. Always respond with valid JSON."
)
_RISK_SYSTEM = (
    "You are a risk management specialist. Provide conservative, data-driven risk "
    "parameters to protect capital."
)
_PLAN_SYSTEM = (
    "You are an execution specialist. Create detailed, actionable plans for trading "
    "decisions on Aptos blockchain."
)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def extract_json(text: str) -> Any:
    """Parse a completion as JSON, tolerating a surrounding markdown fence."""
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)
    return json.loads(text)


class DecisionEngine:
    """Decision-engine adapter. Never raises for model failures."""

    def __init__(
        self,
        model_client: ModelClient,
        *,
        decision_model: str = "llama3-70b-8192",
        fast_model: str = "llama3-8b-8192",
    ) -> None:
        self._client = model_client
        self._decision_model = decision_model
        self._fast_model = fast_model

    async def _complete(
        self,
        *,
        operation: str,
        system: str,
        prompt: str,
        model: str,
        temperature: float,
        max_tokens: int,
        schema: type[BaseModel],
        fallback: dict[str, Any],
    ) -> dict[str, Any]:
        try:
            text = await self._client.chat(
                [
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                model,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            document = schema.model_validate(extract_json(text))
        except (ValueError, ValidationError) as e:
            logger.warning("decision_output_invalid", operation=operation, error=str(e))
            return dict(fallback)
        except Exception:
            logger.exception("decision_call_failed", operation=operation)
            return dict(fallback)
        return document.model_dump(mode="json")

    async def analyze_market_conditions(
        self,
        market_data: dict[str, Any],
        vault_stats: dict[str, Any],
        positions: list[Any],
    ) -> dict[str, Any]:
        prompt = f"""As the Executive Agent for HyperFill trading platform on Aptos, analyze the following data and provide trading decisions:

MARKET DATA:
{_dump(market_data)}

VAULT STATS:
{_dump(vault_stats)}

CURRENT POSITIONS:
{_dump(positions)}

Based on this data, provide a strategic trading decision with the following format:
{{
  "action": "buy|sell|hold|close_position|allocate_liquidity",
  "asset": "APT",
  "amount": number,
  "price": number,
  "confidence": number (0-1),
  "reasoning": "explanation of decision",
  "risk_level": "low|medium|high",
  "expected_profit": number,
  "stop_loss": number,
  "take_profit": number
}}

Consider:
1. Market volatility and trends
2. Available liquidity in vault
3. Risk management principles
4. Profit optimization
5. Position sizing based on vault capacity"""
        return await self._complete(
            operation="analyze_market_conditions",
            system=_DECISION_SYSTEM,
            prompt=prompt,
            model=self._decision_model,
            temperature=0.3,
            max_tokens=1000,
            schema=TradingDecision,
            fallback=FALLBACK_DECISION,
        )

    async def evaluate_risk_parameters(
        self, position: dict[str, Any], market_volatility: float, vault_exposure: float
    ) -> dict[str, Any]:
        prompt = f"""Evaluate risk parameters for a trading position:

POSITION:
{_dump(position)}

MARKET VOLATILITY: {market_volatility}%
VAULT EXPOSURE: {vault_exposure}%

Provide risk management recommendations:
{{
  "position_size_adjustment": number (-1 to 1, where 0 = no change),
  "stop_loss_distance": number (percentage),
  "take_profit_distance": number (percentage),
  "max_exposure_percent": number,
  "risk_score": number (1-10),
  "recommendations": ["string array of specific actions"]
}}"""
        return await self._complete(
            operation="evaluate_risk_parameters",
            system=_RISK_SYSTEM,
            prompt=prompt,
            model=self._fast_model,
            temperature=0.2,
            max_tokens=500,
            schema=RiskParameters,
            fallback=FALLBACK_RISK,
        )

    async def generate_execution_plan(
        self,
        decision: dict[str, Any],
        current_positions: list[Any],
        available_liquidity: float,
    ) -> dict[str, Any]:
        prompt = f"""Generate a detailed execution plan for this trading decision:

DECISION:
{_dump(decision)}

CURRENT POSITIONS:
{_dump(current_positions)}

AVAILABLE LIQUIDITY: {available_liquidity} APT

Create a step-by-step execution plan:
{{
  "steps": [
    {{
      "order": number,
      "action": "string",
      "parameters": {{}},
      "estimated_gas": number,
      "success_probability": number
    }}
  ],
  "total_estimated_cost": number,
  "execution_time_estimate": "string",
  "prerequisites": ["string array"],
  "risk_mitigation": ["string array"]
}}"""
        return await self._complete(
            operation="generate_execution_plan",
            system=_PLAN_SYSTEM,
            prompt=prompt,
            model=self._fast_model,
            temperature=0.1,
            max_tokens=800,
            schema=ExecutionPlan,
            fallback=FALLBACK_PLAN,
        )
