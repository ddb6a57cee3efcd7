"""
brain/types.py — Chat Wire Types

What travels between a conversation and the model, and nothing more:

    Message      {role, content} — one entry of the ordered history
    LLMConfig    model parameters applied to every call (gpt-4o-mini, 0.7, 500)
    LLMResponse  the reply text plus the little metadata worth logging

The history is plain chat: no tool calls, no images, no streaming.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Provider(str, Enum):
    OPENAI = "openai"
    OLLAMA = "ollama"


class Message(BaseModel):
    """One history entry. `as_wire()` is exactly what the provider receives."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=Role.ASSISTANT, content=content)

    def as_wire(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class LLMConfig(BaseModel):
    """Model parameters sent with every chat request of a session."""

    model_config = ConfigDict(frozen=True)

    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)

    def request_params(self) -> dict[str, Any]:
        """Keyword arguments for a chat-completions call."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout_seconds,
        }


class LLMResponse(BaseModel):
    """
    A provider's answer. `content` is None when the provider returned no
    choices at all; `truncated` is set when max_tokens cut the reply short.
    """

    content: Optional[str] = None
    truncated: bool = False
    model: str = ""
    provider: Provider = Provider.OPENAI
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def text(self) -> str:
        return self.content or ""

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens
