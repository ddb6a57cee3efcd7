"""
interfaces/speech.py — Speech Output Seam

Speech synthesis lives outside Jarvis. A session only needs something it can
hand the finished reply to; the call runs as a background task and its result
is never awaited by the turn.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SpeechSynthesizer(Protocol):

    async def speak(self, text: str) -> None:
        """Speak text aloud. May take arbitrarily long; may be cancelled."""
        ...
