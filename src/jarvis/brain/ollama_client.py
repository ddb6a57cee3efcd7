"""
brain/ollama_client.py — Ollama Local LLM Client

Supports any model running in Ollama (llama3, mistral, gemma, ...).
Uses the OpenAI-compatible endpoint Ollama exposes at /v1/, so the OpenAI SDK
is reused and pointed at localhost. No API key required.
"""

from __future__ import annotations

import openai

from jarvis.brain.llm_client import LLMConnectionError
from jarvis.brain.openai_client import OpenAIClient
from jarvis.brain.types import LLMConfig, LLMResponse, Message, Provider
from jarvis.observability.logger import get_logger

log = get_logger(__name__)

_DEFAULT_BASE_URL = "http://localhost:11434/v1"


class OllamaClient(OpenAIClient):
    """
    Ollama client — runs local models via Ollama's OpenAI-compatible API.

    Set base_url if Ollama is on a non-standard host/port.
    """

    provider: Provider = Provider.OLLAMA

    def __init__(self, base_url: str = _DEFAULT_BASE_URL):
        super().__init__(api_key="ollama", base_url=base_url)

    async def generate(self, messages: list[Message], config: LLMConfig) -> LLMResponse:
        log.debug("ollama.generate.start", model=config.model)
        try:
            return await super().generate(messages, config)
        except LLMConnectionError as e:
            raise LLMConnectionError(
                f"Cannot reach Ollama at {self.base_url}. Is `ollama serve` running?",
                provider="ollama",
                status_code=e.status_code,
            ) from e

    async def list_models(self) -> list[str]:
        """Return names of all models available in Ollama."""
        try:
            models = await self._client.models.list()
            return [m.id for m in models.data]
        except openai.OpenAIError as e:
            log.warning("ollama.list_models.failed", error=str(e))
            return []
