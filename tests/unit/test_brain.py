"""
tests/unit/test_brain.py — Brain Module Unit Tests

Tests the LLM clients and the chat client with mocked API calls.
No real API keys or network calls required.

Run with:
    pytest tests/unit/test_brain.py -v
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from jarvis.brain import (
    ChatClient,
    LLMClientFactory,
    LLMConfig,
    LLMConnectionError,
    LLMError,
    LLMResponse,
    Message,
    ResilientLLMClient,
    RetryPolicy,
    Role,
    build_system_preamble,
    chat_client_from_settings,
)
from jarvis.brain.chat_client import EMPTY_REPLY_TEXT
from jarvis.brain.llm_client import LLMContextError, LLMRateLimitError
from jarvis.brain.types import Provider
from jarvis.config.settings import LLMConfig as LLMSettings
from jarvis.config.settings import LLMRetryConfig, Settings


# ─────────────────────────────────────────────────────────────────────────────
# Shared fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def basic_messages() -> list[Message]:
    return [Message.user("Say hello.")]


@pytest.fixture
def basic_config() -> LLMConfig:
    return LLMConfig(model="gpt-4o-mini")


def _mock_llm(content: str | None = "Hello!") -> MagicMock:
    llm = MagicMock()
    llm.generate = AsyncMock(return_value=LLMResponse(content=content, model="gpt-4o-mini"))
    llm.health_check = AsyncMock(return_value=True)
    return llm


# ─────────────────────────────────────────────────────────────────────────────
# Types
# ─────────────────────────────────────────────────────────────────────────────


class TestTypes:
    def test_message_factories(self):
        assert Message.system("s").role == Role.SYSTEM
        assert Message.user("u").role == Role.USER
        assert Message.assistant("a").role == Role.ASSISTANT

    def test_message_wire_shape(self):
        assert Message.user("hi").as_wire() == {"role": "user", "content": "hi"}

    def test_llm_config_request_params(self):
        params = LLMConfig().request_params()
        assert params == {
            "model": "gpt-4o-mini",
            "temperature": 0.7,
            "max_tokens": 500,
            "timeout": 30.0,
        }

    @pytest.mark.parametrize("content", [None, "", " \n "])
    def test_response_blank(self, content):
        assert LLMResponse(content=content).is_blank
        assert not LLMResponse(content="x").is_blank


# ─────────────────────────────────────────────────────────────────────────────
# Chat client
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestChatClient:
    async def test_preamble_prepended(self, basic_config):
        llm = _mock_llm()
        client = ChatClient(llm, basic_config)

        await client.send([Message.user("hi")])

        sent = llm.generate.await_args.kwargs["messages"]
        assert sent[0].role == Role.SYSTEM
        assert sent[0].content == client.system_preamble
        assert sent[1].content == "hi"
        assert llm.generate.await_args.kwargs["config"] is basic_config

    async def test_history_system_messages_dropped(self, basic_config):
        llm = _mock_llm()
        client = ChatClient(llm, basic_config)
        await client.send([Message.system("ignore me"), Message.user("hi")])
        sent = llm.generate.await_args.kwargs["messages"]
        assert [m.role for m in sent] == [Role.SYSTEM, Role.USER]

    async def test_returns_raw_text(self, basic_config):
        reply = 'Done. {"action": {"type": "create_task", "params": {"title": "X"}}}'
        client = ChatClient(_mock_llm(reply), basic_config)
        assert await client.send([Message.user("hi")]) == reply

    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_empty_reply_replaced(self, basic_config, content):
        client = ChatClient(_mock_llm(content), basic_config)
        assert await client.send([Message.user("hi")]) == EMPTY_REPLY_TEXT

    async def test_errors_propagate(self, basic_config):
        llm = _mock_llm()
        llm.generate = AsyncMock(side_effect=LLMConnectionError("down", provider="openai"))
        client = ChatClient(llm, basic_config)
        with pytest.raises(LLMError):
            await client.send([Message.user("hi")])


class TestPreamble:
    def test_contains_action_contract(self):
        preamble = build_system_preamble()
        assert "You are Jarvis" in preamble
        assert '"action"' in preamble
        for action_type in ("create_task", "update_task", "delete_task",
                            "create_reminder", "create_note"):
            assert action_type in preamble

    def test_custom_name(self):
        assert build_system_preamble("Friday").startswith("You are Friday")


# ─────────────────────────────────────────────────────────────────────────────
# Factory
# ─────────────────────────────────────────────────────────────────────────────


class TestLLMClientFactory:
    def test_create_openai(self):
        from jarvis.brain.openai_client import OpenAIClient
        client = LLMClientFactory.create("OpenAI", api_key="sk-test")
        assert isinstance(client, OpenAIClient)

    def test_openai_requires_key(self):
        with pytest.raises(LLMConnectionError):
            LLMClientFactory.create("openai")

    def test_create_ollama(self):
        from jarvis.brain.ollama_client import OllamaClient
        client = LLMClientFactory.create("ollama")
        assert isinstance(client, OllamaClient)
        assert client.provider == Provider.OLLAMA

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            LLMClientFactory.create("skynet")

    def test_from_settings_wraps_resilient(self):
        settings = Settings(
            OPENAI_API_KEY="sk-test",
            llm=LLMSettings(fallback_providers=["ollama"], retry=LLMRetryConfig(max_attempts=1)),
        )
        client = LLMClientFactory.from_settings(settings)
        assert isinstance(client, ResilientLLMClient)
        assert len(client.fallbacks) == 1

    def test_chat_client_from_settings(self):
        settings = Settings(llm=LLMSettings(provider="ollama", model="llama3.1", max_tokens=200))
        chat = chat_client_from_settings(settings, llm_client=_mock_llm())
        assert chat.config.model == "llama3.1"
        assert chat.config.max_tokens == 200


# ─────────────────────────────────────────────────────────────────────────────
# OpenAI client
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestOpenAIClient:
    @pytest.fixture
    def client(self):
        from jarvis.brain.openai_client import OpenAIClient
        return OpenAIClient(api_key="sk-test-fake")

    def _make_mock_response(self, content="Hello!", finish_reason="stop"):
        mock = MagicMock()
        mock.model = "gpt-4o-mini"
        mock.choices = [MagicMock()]
        mock.choices[0].finish_reason = finish_reason
        mock.choices[0].message.content = content
        mock.usage.prompt_tokens = 10
        mock.usage.completion_tokens = 5
        return mock

    async def test_basic_generate(self, client, basic_messages, basic_config):
        client._client.chat.completions.create = AsyncMock(
            return_value=self._make_mock_response("Good day.")
        )
        result = await client.generate(basic_messages, basic_config)
        assert result.content == "Good day."
        assert result.provider == Provider.OPENAI
        assert result.total_tokens == 15
        assert not result.truncated

        kwargs = client._client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 500

    async def test_empty_choices(self, client, basic_messages, basic_config):
        response = self._make_mock_response()
        response.choices = []
        client._client.chat.completions.create = AsyncMock(return_value=response)
        result = await client.generate(basic_messages, basic_config)
        assert result.is_blank
        assert result.content is None

    async def test_auth_error_raises_connection_error(self, client, basic_messages, basic_config):
        import openai as oai
        client._client.chat.completions.create = AsyncMock(
            side_effect=oai.AuthenticationError("Invalid key", response=MagicMock(), body={})
        )
        with pytest.raises(LLMConnectionError):
            await client.generate(basic_messages, basic_config)

    async def test_rate_limit_raises(self, client, basic_messages, basic_config):
        import openai as oai
        client._client.chat.completions.create = AsyncMock(
            side_effect=oai.RateLimitError("Rate limit", response=MagicMock(), body={})
        )
        with pytest.raises(LLMRateLimitError):
            await client.generate(basic_messages, basic_config)

    async def test_length_cutoff_marked_truncated(self, client, basic_messages, basic_config):
        client._client.chat.completions.create = AsyncMock(
            return_value=self._make_mock_response("partial", finish_reason="length")
        )
        result = await client.generate(basic_messages, basic_config)
        assert result.truncated
        assert result.text == "partial"

    async def test_sends_wire_messages(self, client, basic_config):
        client._client.chat.completions.create = AsyncMock(return_value=self._make_mock_response())
        await client.generate([Message.system("Be helpful")], basic_config)
        kwargs = client._client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"] == [{"role": "system", "content": "Be helpful"}]
        assert kwargs["timeout"] == 30.0


# ─────────────────────────────────────────────────────────────────────────────
# Resilient client
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
class TestResilientLLMClient:
    async def test_retries_then_succeeds(self, basic_messages, basic_config):
        primary = _mock_llm()
        primary.generate = AsyncMock(side_effect=[
            LLMConnectionError("blip"),
            LLMResponse(content="ok"),
        ])
        client = ResilientLLMClient(primary, retry=RetryPolicy(max_attempts=2, base_delay=0, max_delay=0))
        result = await client.generate(basic_messages, basic_config)
        assert result.content == "ok"
        assert primary.generate.await_count == 2

    async def test_fails_over(self, basic_messages, basic_config):
        primary = _mock_llm()
        primary.generate = AsyncMock(side_effect=LLMConnectionError("down"))
        fallback = _mock_llm("from fallback")
        client = ResilientLLMClient(primary, [fallback], retry=RetryPolicy(max_attempts=1))
        result = await client.generate(basic_messages, basic_config)
        assert result.content == "from fallback"

    async def test_all_fail(self, basic_messages, basic_config):
        primary = _mock_llm()
        primary.generate = AsyncMock(side_effect=LLMConnectionError("down"))
        client = ResilientLLMClient(primary, retry=RetryPolicy(max_attempts=1))
        with pytest.raises(LLMError) as exc_info:
            await client.generate(basic_messages, basic_config)
        assert exc_info.value.provider == "all"

    async def test_permanent_error_not_failed_over(self, basic_messages, basic_config):
        primary = _mock_llm()
        primary.generate = AsyncMock(side_effect=LLMContextError("too long"))
        fallback = _mock_llm()
        client = ResilientLLMClient(primary, [fallback], retry=RetryPolicy(max_attempts=3))
        with pytest.raises(LLMContextError):
            await client.generate(basic_messages, basic_config)
        fallback.generate.assert_not_called()
