"""
agent/interpreter.py — Response Interpreter

Splits a raw model reply into the text shown to the user and the optional
embedded Action.

Two candidate-location strategies:

  greedy   (default) — first '{' through the LAST '}' in the text, provided
                       the span contains the token "action". Matches
                       /\\{[\\s\\S]*"action"[\\s\\S]*\\}/. It is not brace
                       balanced: any JSON-like fragment after the action
                       block widens the span and usually breaks the parse,
                       in which case the whole reply is returned as text.
  balanced           — first well-formed object (string/escape aware brace
                       scan) whose top level parses with an "action" key.

Either way, a candidate that does not parse is non-fatal.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from jarvis.agent.actions import Action
from jarvis.observability.logger import get_logger

log = get_logger(__name__)

_GREEDY_PATTERN = re.compile(r'\{.*"action".*\}', re.DOTALL)

ACTION_COMPLETED_TEXT = "Action completed."

STRATEGIES = ("greedy", "balanced")


@dataclass(frozen=True)
class InterpretedResponse:
    response: str
    action: Optional[Action] = None


# ─────────────────────────────────────────────────────────────────────────────
# Candidate location
# ─────────────────────────────────────────────────────────────────────────────

def _iter_balanced_objects(text: str):
    """Yield (start, end) spans of brace-balanced {...} regions, outermost first."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = -1
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = i + 1
                    break
        if end != -1:
            yield start, end
        start = text.find("{", start + 1)


class ResponseInterpreter:
    """Stateless: interpret() may be called from any number of sessions."""

    def __init__(self, strategy: str = "greedy"):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown interpreter strategy '{strategy}'. Valid: {STRATEGIES}")
        self.strategy = strategy

    def interpret(self, text: str) -> InterpretedResponse:
        if self.strategy == "balanced":
            return self._interpret_balanced(text)
        return self._interpret_greedy(text)

    # ── Strategies ────────────────────────────────────────────────────────────

    def _interpret_greedy(self, text: str) -> InterpretedResponse:
        match = _GREEDY_PATTERN.search(text)
        if match is None:
            return InterpretedResponse(response=text)

        candidate = match.group(0)
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            log.debug("interpreter.parse_failed", error=str(e), candidate=candidate[:200])
            return InterpretedResponse(response=text)
        if not isinstance(parsed, dict):
            log.debug("interpreter.not_an_object", kind=type(parsed).__name__)
            return InterpretedResponse(response=text)

        cleaned = (text[:match.start()] + text[match.end():]).strip()
        return self._build(parsed, cleaned)

    def _interpret_balanced(self, text: str) -> InterpretedResponse:
        for start, end in _iter_balanced_objects(text):
            try:
                parsed = json.loads(text[start:end])
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict) and "action" in parsed:
                cleaned = (text[:start] + text[end:]).strip()
                return self._build(parsed, cleaned)
        return InterpretedResponse(response=text)

    # ── Helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    def _build(parsed: dict[str, Any], cleaned: str) -> InterpretedResponse:
        response = cleaned
        if not response:
            fallback_text = parsed.get("response")
            if isinstance(fallback_text, str) and fallback_text:
                response = fallback_text
            else:
                response = ACTION_COMPLETED_TEXT
        return InterpretedResponse(response=response, action=_to_action(parsed.get("action")))


def _to_action(raw: Any) -> Optional[Action]:
    if not isinstance(raw, dict):
        log.debug("interpreter.action_not_object", kind=type(raw).__name__)
        return None
    action_type = raw.get("type")
    if not isinstance(action_type, str):
        log.debug("interpreter.action_missing_type")
        return None
    params = raw.get("params")
    if not isinstance(params, dict):
        params = {}
    return Action(type=action_type, params=params)
