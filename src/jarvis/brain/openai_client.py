"""
brain/openai_client.py — OpenAI LLM Client

Supports gpt-4o-mini, gpt-4o and any OpenAI-compatible endpoint
(LiteLLM proxy, local vLLM, Ollama's /v1 API).
Handles error normalisation: every SDK exception leaves as an LLMError.
"""

from __future__ import annotations

from typing import Optional

import openai
from openai import AsyncOpenAI

from jarvis.brain.llm_client import (
    BaseLLMClient,
    LLMConnectionError,
    LLMContextError,
    LLMError,
    LLMInvalidRequestError,
    LLMRateLimitError,
)
from jarvis.brain.types import LLMConfig, LLMResponse, Message, Provider
from jarvis.observability.logger import get_logger

log = get_logger(__name__)


class OpenAIClient(BaseLLMClient):
    """
    OpenAI chat-completions client (also works with any OpenAI-compatible
    endpoint).
    """

    provider: Provider = Provider.OPENAI

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,     # None = official OpenAI endpoint
        organization: Optional[str] = None,
    ):
        super().__init__(api_key=api_key, base_url=base_url)
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
        )

    # ── Public API ────────────────────────────────────────────────────────────

    async def generate(self, messages: list[Message], config: LLMConfig) -> LLMResponse:
        name = self.provider.value
        log.debug("openai.generate.start", model=config.model, message_count=len(messages))

        try:
            completion = await self._client.chat.completions.create(
                messages=[m.as_wire() for m in messages],
                **config.request_params(),
            )
        except openai.OpenAIError as e:
            raise _translate_error(e, name) from e

        reply = self._to_response(completion)
        log.debug(
            "openai.generate.complete",
            model=reply.model,
            tokens=reply.total_tokens,
            truncated=reply.truncated,
        )
        return reply

    async def health_check(self) -> bool:
        try:
            await self._client.models.list()
            return True
        except openai.OpenAIError as e:
            log.warning("openai.health_check.failed", error=str(e), error_type=type(e).__name__)
            return False

    def _to_response(self, completion) -> LLMResponse:
        model = getattr(completion, "model", "") or ""
        if not completion.choices:
            return LLMResponse(content=None, model=model, provider=self.provider)

        choice = completion.choices[0]
        usage = completion.usage
        return LLMResponse(
            content=choice.message.content,
            truncated=choice.finish_reason == "length",
            model=model,
            provider=self.provider,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


def _translate_error(e: openai.OpenAIError, provider: str) -> LLMError:
    """Map an SDK exception onto the LLMError family."""
    status = getattr(e, "status_code", None)
    if isinstance(e, openai.AuthenticationError):
        return LLMConnectionError(str(e), provider=provider, status_code=401)
    if isinstance(e, openai.RateLimitError):
        return LLMRateLimitError(str(e), provider=provider)
    if isinstance(e, openai.BadRequestError):
        lowered = str(e).lower()
        if "context" in lowered or "too long" in lowered:
            return LLMContextError(str(e), provider=provider, status_code=status)
        return LLMInvalidRequestError(str(e), provider=provider, status_code=status)
    if isinstance(e, (openai.APIConnectionError, openai.InternalServerError)):
        return LLMConnectionError(str(e), provider=provider, status_code=status)
    return LLMError(str(e), provider=provider, status_code=status)
