"""
brain/chat_client.py — Upstream Chat Client

The single seam between a conversation and the language model:

    send(history) -> raw reply text   |   raises LLMError

Every call prepends the fixed system preamble. The preamble carries the
assistant persona and the action contract: when the model wants something
persisted it embeds

    {"action": {"type": "...", "params": {...}}}

inside its natural-language reply. Parsing that payload is the job of
agent/interpreter.py, not of this module.
"""

from __future__ import annotations

from typing import Sequence

from jarvis.brain.llm_client import BaseLLMClient
from jarvis.brain.types import LLMConfig, Message, Role
from jarvis.observability.logger import get_logger

log = get_logger(__name__)

# Returned when the provider answers but with no text.
EMPTY_REPLY_TEXT = "I apologize, I encountered an error."

_PREAMBLE_TEMPLATE = """You are {name}, an advanced AI personal assistant inspired by Tony Stark's AI. You are helpful, intelligent, sophisticated, and witty.

Your capabilities include:
- Managing tasks and to-do lists
- Setting reminders and scheduling
- Creating and organizing notes
- Providing weather, news, and stock information
- Answering questions and having natural conversations
- Learning user preferences over time

When users ask you to perform actions (create tasks, set reminders, etc.), respond naturally and indicate what action you're taking.

For task-related requests, include an action object in your response with:
{{
  "action": {{
    "type": "create_task" | "update_task" | "delete_task" | "create_reminder" | "create_note",
    "params": {{ relevant parameters }}
  }}
}}

Parameters by type:
- create_task: title (required), description, priority ("low" | "medium" | "high"), due_date (ISO 8601)
- create_reminder: title (required), remind_at (ISO 8601, required), description
- create_note: content (required), title

Be conversational, helpful, and maintain context from previous messages. Address the user naturally and professionally."""


def build_system_preamble(assistant_name: str = "Jarvis") -> str:
    """Render the persona + action-contract preamble for the given name."""
    return _PREAMBLE_TEMPLATE.format(name=assistant_name)


class ChatClient:
    """
    Sends ordered message history to the model, preamble first.

    The preamble is fixed at construction; callers pass only user/assistant
    turns. System messages in the history are dropped so the preamble stays
    the only system instruction.
    """

    def __init__(
        self,
        llm_client: BaseLLMClient,
        llm_config: LLMConfig,
        system_preamble: str | None = None,
    ):
        self._llm = llm_client
        self._config = llm_config
        self._preamble = system_preamble or build_system_preamble()

    @property
    def system_preamble(self) -> str:
        return self._preamble

    @property
    def config(self) -> LLMConfig:
        return self._config

    def build_messages(self, history: Sequence[Message]) -> list[Message]:
        return [Message.system(self._preamble)] + [
            m for m in history if m.role != Role.SYSTEM
        ]

    async def send(self, history: Sequence[Message]) -> str:
        """Return the model's raw reply text. Raises LLMError on any failure."""
        messages = self.build_messages(history)
        response = await self._llm.generate(messages=messages, config=self._config)
        if response.is_blank:
            log.warning("chat_client.empty_reply", model=response.model,
                        truncated=response.truncated)
            return EMPTY_REPLY_TEXT
        return response.text

    async def health_check(self) -> bool:
        return await self._llm.health_check()

    def __repr__(self) -> str:
        return f"<ChatClient llm={self._llm!r} model={self._config.model}>"
