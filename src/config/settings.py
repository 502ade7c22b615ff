from __future__ import annotations

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import PROTOCOL_VERSION, SUPPORTED_PROTOCOL_VERSIONS

# Load .env once at module import so every BaseSettings subclass sees the env vars
load_dotenv()

HYPERFILL_VAULT_ADDRESS = "0x96d2b185a5b581f98dc1df57b59a5875eb53b3a65ef7a9b0d5e42aa44c3b8b82"


class GatewaySettings(BaseSettings):
    """Gateway server settings. Env vars prefixed with GATEWAY_."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    host: str = "0.0.0.0"
    port: int = 1000
    protocol_version: str = PROTOCOL_VERSION
    log_level: str = "INFO"
    json_logs: bool = True

    @field_validator("protocol_version")
    @classmethod
    def _validate_protocol_version(cls, v: str) -> str:
        if v not in SUPPORTED_PROTOCOL_VERSIONS:
            msg = f"GATEWAY_PROTOCOL_VERSION must be one of {SUPPORTED_PROTOCOL_VERSIONS} (got '{v}')"
            raise ValueError(msg)
        return v


class AptosSettings(BaseSettings):
    """Aptos fullnode and vault settings. Env vars prefixed with APTOS_."""

    model_config = SettingsConfigDict(env_prefix="APTOS_")

    node_url: str = "https://fullnode.testnet.aptoslabs.com/v1"
    account_address: str  # required, fail fast if missing
    vault_address: str = HYPERFILL_VAULT_ADDRESS
    view_timeout_s: float = Field(10.0, gt=0)
    default_leverage: float = Field(1.1, gt=0)
    default_slippage: float = Field(5.0, ge=0)

    @field_validator("account_address", "vault_address")
    @classmethod
    def _validate_address(cls, v: str) -> str:
        v = v.strip().lower()
        if not v.startswith("0x") or len(v) < 3:
            raise ValueError(f"Aptos address must be 0x-prefixed hex (got '{v}')")
        try:
            int(v, 16)
        except ValueError as e:
            raise ValueError(f"Aptos address must be 0x-prefixed hex (got '{v}')") from e
        return v


class MarketSettings(BaseSettings):
    """Third-party price feed settings. Env vars prefixed with MARKET_."""

    model_config = SettingsConfigDict(env_prefix="MARKET_")

    price_api_url: str = "https://api.coingecko.com/api/v3/simple/price"
    coin_id: str = "aptos"
    fetch_timeout_s: float = Field(5.0, gt=0)
    user_agent: str = "HyperFill-MarketAnalyzer/1.0.0"


class LLMSettings(BaseSettings):
    """Decision-engine LLM settings via Groq's OpenAI-compatible endpoint."""

    model_config = SettingsConfigDict(env_prefix="GROQ_")

    api_key: str = ""  # empty = strategist server disabled
    base_url: str = "https://api.groq.com/openai/v1"
    decision_model: str = "llama3-70b-8192"
    fast_model: str = "llama3-8b-8192"
    timeout_s: float = Field(30.0, gt=0)


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    aptos: AptosSettings = Field(default_factory=AptosSettings)
    market: MarketSettings = Field(default_factory=MarketSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on missing required fields."""
    return Settings()
