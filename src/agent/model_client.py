from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from src.infra.errors import LLMError

logger = structlog.get_logger()


class ModelClient(ABC):
    """Abstract base class for LLM model clients."""

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send messages and return the complete response content."""
        ...


def _first_choice(response, *, context: str = ""):
    """Extract first choice from response, raising LLMError if empty."""
    if not response.choices:
        raise LLMError(f"Empty choices from provider ({context})")
    return response.choices[0]


class OpenAICompatModelClient(ModelClient):
    """Model client using the OpenAI SDK.

    Works with Groq and other OpenAI-compatible endpoints. Single attempt
    per call: the SDK's own retries are disabled and every failure is
    surfaced as LLMError for the caller's fallback path.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        *,
        timeout_s: float = 30.0,
    ) -> None:
        self._client = AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout_s, max_retries=0
        )

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send messages and return the complete response content."""
        logger.debug("chat_request", model=model, message_count=len(messages))
        options: dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["max_tokens"] = max_tokens
        try:
            response = await self._client.chat.completions.create(
                model=model, messages=messages, **options
            )
        except (APIConnectionError, APITimeoutError) as e:
            raise LLMError(f"LLM connection failed: {e}") from e
        except RateLimitError as e:
            raise LLMError(f"LLM rate limited: {e}", code="LLM_RATE_LIMITED") from e
        except APIStatusError as e:
            raise LLMError(f"LLM API error: {e.status_code} {e.message}") from e
        content = _first_choice(response, context="chat").message.content or ""
        logger.debug("chat_response", chars=len(content))
        return content
