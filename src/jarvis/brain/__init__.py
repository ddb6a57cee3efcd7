"""
brain/__init__.py — Jarvis LLM Brain

Builds the upstream chat client from Settings:

    settings ─► LLMClientFactory.from_settings ─► ResilientLLMClient
             ─► chat_client_from_settings      ─► ChatClient (preamble + params)
"""

from __future__ import annotations

from typing import Optional

from jarvis.brain.chat_client import ChatClient, build_system_preamble
from jarvis.brain.llm_client import (
    BaseLLMClient,
    LLMConnectionError,
    LLMContextError,
    LLMError,
    LLMInvalidRequestError,
    LLMRateLimitError,
    ResilientLLMClient,
    RetryPolicy,
)
from jarvis.brain.types import (
    LLMConfig,
    LLMResponse,
    Message,
    Provider,
    Role,
)
from jarvis.observability.logger import get_logger

log = get_logger(__name__)

__all__ = [
    "LLMClientFactory",
    "chat_client_from_settings",
    "BaseLLMClient",
    "ResilientLLMClient",
    "RetryPolicy",
    "ChatClient",
    "build_system_preamble",
    "LLMError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMContextError",
    "LLMInvalidRequestError",
    "Message",
    "LLMConfig",
    "LLMResponse",
    "Role",
    "Provider",
]


class LLMClientFactory:

    @staticmethod
    def create(
        provider: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> BaseLLMClient:
        provider = provider.lower().strip()

        if provider == Provider.OPENAI.value:
            if not api_key:
                raise LLMConnectionError("OPENAI_API_KEY is required", provider="openai")
            from jarvis.brain.openai_client import OpenAIClient
            return OpenAIClient(api_key=api_key, base_url=base_url)

        if provider == Provider.OLLAMA.value:
            from jarvis.brain.ollama_client import OllamaClient
            return OllamaClient(base_url=base_url) if base_url else OllamaClient()

        valid = ", ".join(p.value for p in Provider)
        raise ValueError(f"Unknown LLM provider: '{provider}'. Valid options: {valid}")

    @staticmethod
    def from_settings(settings) -> ResilientLLMClient:
        """
        Primary provider from settings.llm.provider, wrapped with the retry
        policy and any settings.llm.fallback_providers that can be built.
        """
        endpoints = {
            "openai": (settings.openai_api_key, settings.openai_base_url),
            "ollama": (None, settings.ollama_base_url_v1),
        }

        def build(name: str) -> BaseLLMClient:
            api_key, base_url = endpoints.get(name, (None, None))
            return LLMClientFactory.create(name, api_key=api_key, base_url=base_url)

        primary_name = settings.llm.provider
        primary = build(primary_name)

        fallbacks: list[BaseLLMClient] = []
        for name in settings.llm.fallback_providers:
            name = name.lower().strip()
            if name == primary_name:
                continue
            try:
                fallbacks.append(build(name))
            except (LLMError, ValueError) as e:
                log.warning("llm.fallback_skipped", provider=name, error=str(e))

        retry = settings.llm.retry
        return ResilientLLMClient(
            primary=primary,
            fallbacks=fallbacks,
            retry=RetryPolicy(
                max_attempts=retry.max_attempts,
                base_delay=retry.base_delay,
                max_delay=retry.max_delay,
            ),
        )


def chat_client_from_settings(settings, llm_client: Optional[BaseLLMClient] = None) -> ChatClient:
    """Build the upstream ChatClient (preamble + model parameters) from Settings."""
    llm_config = LLMConfig(
        model=settings.llm.model,
        temperature=settings.llm.temperature,
        max_tokens=settings.llm.max_tokens,
        timeout_seconds=settings.llm.timeout_seconds,
    )
    return ChatClient(
        llm_client=llm_client or LLMClientFactory.from_settings(settings),
        llm_config=llm_config,
        system_preamble=build_system_preamble(settings.assistant.name),
    )
