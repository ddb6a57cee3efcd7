"""
brain/llm_client.py — LLM Client Contract, Errors and Failover

  - LLMError family — the only exceptions that leave the brain layer. A
    conversation treats any of them as "upstream unavailable" and answers
    that turn from the keyword fallback instead.
  - BaseLLMClient   — what every provider client (OpenAI, Ollama) implements.
  - RetryPolicy     — exponential backoff for transient failures.
  - ResilientLLMClient — retries the primary provider, then walks the
    configured fallback providers in order.
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from jarvis.brain.types import LLMConfig, LLMResponse, Message
from jarvis.observability.logger import get_logger

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────────────


class LLMError(Exception):
    """The upstream model could not produce a reply."""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class LLMConnectionError(LLMError):
    """Transport failure, server error, or rejected credentials."""


class LLMRateLimitError(LLMError):
    """Provider throttled the request (HTTP 429)."""

    def __init__(self, message: str, provider: str = "", retry_after: Optional[float] = None):
        super().__init__(message, provider, status_code=429)
        self.retry_after = retry_after


class LLMContextError(LLMError):
    """Conversation history no longer fits the model's context window."""


class LLMInvalidRequestError(LLMError):
    """Provider rejected the request parameters."""


# Worth another attempt on the same provider
TRANSIENT_ERRORS: tuple[type[LLMError], ...] = (LLMConnectionError, LLMRateLimitError)
# Would fail the same way on every provider
PERMANENT_ERRORS: tuple[type[LLMError], ...] = (LLMContextError, LLMInvalidRequestError)


# ─────────────────────────────────────────────────────────────────────────────
# Client contract
# ─────────────────────────────────────────────────────────────────────────────


class BaseLLMClient(ABC):
    """A chat-completion provider. Implementations must raise only LLMError."""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key
        self.base_url = base_url

    @abstractmethod
    async def generate(self, messages: list[Message], config: LLMConfig) -> LLMResponse:
        """Send messages, return the normalised response."""

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the provider answers and accepts our credentials."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} base_url={self.base_url!r}>"


# ─────────────────────────────────────────────────────────────────────────────
# Retry + failover
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    base_delay: float = 0.5
    max_delay: float = 5.0

    def delay_for(self, attempt: int, error: LLMError) -> float:
        """Seconds to wait after failed attempt number `attempt` (0-based)."""
        if isinstance(error, LLMRateLimitError) and error.retry_after:
            return min(error.retry_after, self.max_delay)
        return min(self.base_delay * (2 ** attempt) + random.uniform(0, 0.25), self.max_delay)


class ResilientLLMClient(BaseLLMClient):
    """
    Primary provider with retries, then each fallback provider in turn.

    Permanent errors are re-raised at once. When every provider is exhausted
    an LLMError with provider="all" is raised. The caller's own timeout still
    bounds the whole sequence.
    """

    def __init__(
        self,
        primary: BaseLLMClient,
        fallbacks: Optional[Sequence[BaseLLMClient]] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        super().__init__()
        self._primary = primary
        self._fallbacks = list(fallbacks or [])
        self._retry = retry or RetryPolicy()
        self._active_client: BaseLLMClient = primary

    @property
    def primary(self) -> BaseLLMClient:
        return self._primary

    @property
    def fallbacks(self) -> list[BaseLLMClient]:
        return list(self._fallbacks)

    async def generate(self, messages: list[Message], config: LLMConfig) -> LLMResponse:
        last_error: Optional[LLMError] = None
        for client in [self._primary, *self._fallbacks]:
            if last_error is not None:
                log.warning("llm.failover", to_client=repr(client), reason=str(last_error))
            try:
                response = await self._generate_with_retry(client, messages, config)
            except PERMANENT_ERRORS:
                raise
            except LLMError as e:
                last_error = e
                log.error("llm.provider_exhausted", client=repr(client), error=str(e))
                continue
            self._active_client = client
            return response

        raise LLMError(f"All LLM clients failed. Last error: {last_error}", provider="all")

    async def _generate_with_retry(
        self, client: BaseLLMClient, messages: list[Message], config: LLMConfig
    ) -> LLMResponse:
        policy = self._retry
        for attempt in range(policy.max_attempts):
            try:
                return await client.generate(messages=messages, config=config)
            except TRANSIENT_ERRORS as e:
                if attempt + 1 >= policy.max_attempts:
                    raise
                delay = policy.delay_for(attempt, e)
                log.warning(
                    "llm.retry_scheduled",
                    attempt=attempt + 1,
                    max_attempts=policy.max_attempts,
                    delay_s=round(delay, 2),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)
        raise LLMError("RetryPolicy.max_attempts must be >= 1", provider=client.__class__.__name__)

    async def health_check(self) -> bool:
        return await self._active_client.health_check()

    def __repr__(self) -> str:
        return f"<ResilientLLMClient primary={self._primary!r} fallbacks={len(self._fallbacks)}>"
