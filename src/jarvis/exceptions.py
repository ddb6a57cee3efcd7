"""
exceptions.py — Jarvis Unified Error Hierarchy

All Jarvis-specific exceptions live here. Agent and memory layers raise
typed subclasses of JarvisError — never bare Exception.

Import from here, not from individual modules:
    from jarvis.exceptions import NoActiveConversationError, PersistenceError

Hierarchy:
    JarvisError
    ├── AgentError
    │   ├── NoActiveConversationError
    │   ├── EmptyMessageError
    │   ├── SessionClosedError
    │   └── TurnTimeoutError
    └── PersistenceError
        └── UnknownTableError

    LLMError  (plain Exception subclass, defined in brain/llm_client.py and
    ├── LLMConnectionError          re-exported here; NOT a JarvisError)
    ├── LLMRateLimitError
    ├── LLMContextError
    └── LLMInvalidRequestError

ConversationSession.run_turn turns LLMError into the offline fallback, so
callers of a turn only see JarvisError subclasses. Code that talks to a
client directly must catch LLMError itself.

ConfigError lives in jarvis.config.settings; it is raised before any of the
runtime layers exist.
"""

from __future__ import annotations


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class JarvisError(Exception):
    """Base class for all Jarvis exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Agent layer
# ─────────────────────────────────────────────────────────────────────────────

class AgentError(JarvisError):
    """Base for conversation/turn errors."""


class NoActiveConversationError(AgentError):
    """A turn or append was attempted before get_or_create() succeeded."""

    def __init__(self, user_id: str, message: str = "") -> None:
        self.user_id = user_id
        super().__init__(
            message or f"No active conversation for user '{user_id}'. "
                       f"Call get_or_create() first."
        )


class EmptyMessageError(AgentError):
    """User input was empty or whitespace only."""


class SessionClosedError(AgentError):
    """The session has been torn down and cannot run further turns."""


class TurnTimeoutError(AgentError):
    """The upstream call for a single turn exceeded its allowed time."""


# ─────────────────────────────────────────────────────────────────────────────
# Persistence layer
# ─────────────────────────────────────────────────────────────────────────────

class PersistenceError(JarvisError):
    """A gateway read or write failed."""


class UnknownTableError(PersistenceError):
    """The gateway was asked for a table it does not manage."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Unknown table: '{table}'")


# ─────────────────────────────────────────────────────────────────────────────
# LLM layer  (re-exported here for convenience — source of truth is brain/)
# ─────────────────────────────────────────────────────────────────────────────

from jarvis.brain.llm_client import (  # noqa: E402,F401 — re-export
    LLMConnectionError,
    LLMContextError,
    LLMError,
    LLMInvalidRequestError,
    LLMRateLimitError,
)


__all__ = [
    "JarvisError",
    # Agent
    "AgentError",
    "NoActiveConversationError",
    "EmptyMessageError",
    "SessionClosedError",
    "TurnTimeoutError",
    # Persistence
    "PersistenceError",
    "UnknownTableError",
    # LLM (re-exported)
    "LLMError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMContextError",
    "LLMInvalidRequestError",
]
