"""
agent/fallback.py — Offline Fallback Responder

Canned replies used when the model is unreachable or too slow. Matching is a
plain case-insensitive substring test, first rule wins, so "hi" also matches
inside words like "this". Never produces an Action.
"""

from __future__ import annotations

from jarvis.observability.logger import get_logger

log = get_logger(__name__)

# (keywords, reply template) — checked in order
_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("hello", "hi", "hey"),
     "Hello! I am {name}, your AI assistant. How may I assist you today?"),
    (("task", "todo"),
     "I can help you manage your tasks. You can ask me to create, update, or list your tasks."),
    (("remind",),
     "I can set reminders for you. Just tell me what you need to be reminded about and when."),
    (("note",),
     "I can help you create and organize notes. What would you like to note down?"),
    (("weather",),
     "I can provide weather information. Which location would you like to know about?"),
)

_DEFAULT_REPLY = (
    "I am {name}, your AI assistant. I can help you with tasks, reminders, "
    "notes, and information. How may I assist you?"
)


class FallbackResponder:

    def __init__(self, assistant_name: str = "Jarvis"):
        self.assistant_name = assistant_name

    def respond(self, text: str) -> str:
        lowered = (text or "").lower()
        for keywords, template in _RULES:
            if any(k in lowered for k in keywords):
                log.debug("fallback.matched", keyword=next(k for k in keywords if k in lowered))
                return template.format(name=self.assistant_name)
        return _DEFAULT_REPLY.format(name=self.assistant_name)
