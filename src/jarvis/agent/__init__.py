"""
agent/__init__.py — Jarvis Conversation Core
"""

from jarvis.agent.actions import Action, ActionType
from jarvis.agent.dispatcher import ActionDispatcher, DispatchOutcome, DispatchStatus
from jarvis.agent.fallback import FallbackResponder
from jarvis.agent.interpreter import InterpretedResponse, ResponseInterpreter
from jarvis.agent.service import CommandService
from jarvis.agent.session import ConversationMessage, ConversationSession, TurnResult

__all__ = [
    "Action",
    "ActionType",
    "ActionDispatcher",
    "DispatchOutcome",
    "DispatchStatus",
    "FallbackResponder",
    "InterpretedResponse",
    "ResponseInterpreter",
    "CommandService",
    "ConversationMessage",
    "ConversationSession",
    "TurnResult",
]
