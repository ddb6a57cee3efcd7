"""
agent/session.py — Conversation Session

One ConversationSession exists per user per process. It owns the active
conversation, its ordered message log, and turn execution:

    user message -> upstream model (bounded) -> interpret -> assistant message
                 -> dispatch action -> audit record -> speak (background)

If the model fails or times out, the fallback responder supplies the reply and
no action is dispatched. Turns on one session are serialized by an
asyncio.Lock in arrival order.

get_or_create() is not atomic across processes: two callers can both see "no
conversation" and both create one.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from jarvis.agent.actions import Action
from jarvis.agent.dispatcher import DispatchOutcome
from jarvis.agent.service import CommandService
from jarvis.agent.utils import fire_and_forget
from jarvis.brain.chat_client import ChatClient
from jarvis.brain.types import Message, Role
from jarvis.exceptions import (
    EmptyMessageError,
    LLMError,
    NoActiveConversationError,
    PersistenceError,
    SessionClosedError,
    TurnTimeoutError,
)
from jarvis.interfaces.speech import SpeechSynthesizer
from jarvis.memory.gateway import PersistenceGateway
from jarvis.observability.logger import bind_session, clear_session, get_logger

log = get_logger(__name__)

NEW_CONVERSATION_TITLE = "New Conversation"


class ConversationMessage(BaseModel):
    """A persisted message. Immutable once appended."""
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    created_at: str

    def to_llm_message(self) -> Message:
        return Message(role=self.role, content=self.content)


@dataclass(frozen=True)
class TurnResult:
    response: str
    action: Optional[Action] = None
    outcome: Optional[DispatchOutcome] = None
    used_fallback: bool = False
    success: bool = True


class ConversationSession:
    """Per-user conversation state and serialized turn execution."""

    def __init__(
        self,
        user_id: str,
        gateway: PersistenceGateway,
        chat_client: ChatClient,
        service: CommandService,
        speaker: Optional[SpeechSynthesizer] = None,
        voice_enabled: bool = True,
        turn_timeout: float = 30.0,
        record_upstream_failure: bool = False,
    ):
        self.id = f"sess_{uuid.uuid4().hex[:12]}"
        self.user_id = user_id
        self.created_at = time.time()

        self._gateway = gateway
        self._chat = chat_client
        self._service = service
        self._speaker = speaker
        self._voice_enabled = voice_enabled
        self._turn_timeout = turn_timeout
        self._record_upstream_failure = record_upstream_failure

        self._conversation: Optional[dict[str, Any]] = None
        self._messages: list[ConversationMessage] = []
        self._lock = asyncio.Lock()
        self._speech_tasks: set[asyncio.Task] = set()
        self._closed = False

        # Metrics
        self.turn_count: int = 0
        self.fallback_count: int = 0
        self.action_count: int = 0

    # ── Factory ───────────────────────────────────────────────────────────────

    @classmethod
    def from_settings(
        cls,
        settings,
        gateway: PersistenceGateway,
        chat_client: ChatClient,
        service: CommandService,
        speaker: Optional[SpeechSynthesizer] = None,
    ) -> "ConversationSession":
        return cls(
            user_id=settings.assistant.user_id,
            gateway=gateway,
            chat_client=chat_client,
            service=service,
            speaker=speaker,
            voice_enabled=settings.assistant.voice_enabled,
            turn_timeout=settings.llm.timeout_seconds,
            record_upstream_failure=settings.audit.record_upstream_failure,
        )

    # ── Accessors ─────────────────────────────────────────────────────────────

    @property
    def conversation_id(self) -> Optional[str]:
        return self._conversation["id"] if self._conversation else None

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    def status_summary(self) -> dict[str, Any]:
        return {
            "session_id": self.id,
            "user_id": self.user_id,
            "conversation_id": self.conversation_id,
            "messages": len(self._messages),
            "turns": self.turn_count,
            "fallback_turns": self.fallback_count,
            "actions": self.action_count,
            "busy": self.is_busy,
            "closed": self._closed,
            "uptime_seconds": round(time.time() - self.created_at, 1),
        }

    # ── Conversation lifecycle ────────────────────────────────────────────────

    async def get_or_create(self) -> str:
        """Load the user's most recent conversation, or start a new one."""
        rows = await self._gateway.query(
            "conversations",
            filters={"user_id": self.user_id},
            order_by="created_at",
            descending=True,
            limit=1,
        )
        if rows:
            self._conversation = rows[0]
            message_rows = await self._gateway.query(
                "messages",
                filters={"conversation_id": self._conversation["id"]},
                order_by="created_at",
            )
            self._messages = [self._row_to_message(r) for r in message_rows]
            log.info("session.conversation_loaded",
                     conversation_id=self.conversation_id, messages=len(self._messages))
        else:
            self._conversation = await self._gateway.insert(
                "conversations",
                {"user_id": self.user_id, "title": NEW_CONVERSATION_TITLE},
            )
            self._messages = []
            log.info("session.conversation_created", conversation_id=self.conversation_id)
        return self._conversation["id"]

    async def append(self, role: Role, content: str) -> ConversationMessage:
        """Persist a message, then add it to the in-memory log. Gateway errors propagate."""
        conversation_id = self._require_conversation()
        row = await self._gateway.insert(
            "messages",
            {"conversation_id": conversation_id, "role": Role(role).value, "content": content},
        )
        message = ConversationMessage(
            id=row["id"], role=Role(role), content=content, created_at=row["created_at"]
        )
        self._messages.append(message)
        return message

    async def close(self) -> None:
        """Cancel outstanding speech and refuse further turns."""
        self._closed = True
        pending = [t for t in self._speech_tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        log.info("session.closed", session_id=self.id, turns=self.turn_count,
                 cancelled_speech=len(pending))

    # ── Turn ──────────────────────────────────────────────────────────────────

    async def run_turn(self, text: str) -> TurnResult:
        if self._closed:
            raise SessionClosedError(f"Session {self.id} is closed")
        if not text or not text.strip():
            raise EmptyMessageError("Message must not be empty")
        text = text.strip()
        self._require_conversation()

        async with self._lock:
            if self._closed:
                raise SessionClosedError(f"Session {self.id} is closed")
            bind_session(self.id, self.user_id)
            try:
                return await self._run_turn_locked(text)
            finally:
                clear_session()

    async def _run_turn_locked(self, text: str) -> TurnResult:
        t0 = time.monotonic()
        await self.append(Role.USER, text)
        self.turn_count += 1
        log.info("session.turn_start", turn=self.turn_count, chars=len(text))

        action: Optional[Action] = None
        outcome: Optional[DispatchOutcome] = None
        used_fallback = False

        try:
            raw = await self._call_upstream()
        except (LLMError, TurnTimeoutError) as e:
            log.warning("session.upstream_unavailable",
                        error=str(e), error_type=type(e).__name__)
            used_fallback = True
            self.fallback_count += 1
            response = self._service.fallback(text)
        else:
            interpreted = self._service.interpret(raw)
            response = interpreted.response
            action = interpreted.action

        reply_persisted = True
        try:
            await self.append(Role.ASSISTANT, response)
        except PersistenceError as e:
            reply_persisted = False
            log.error("session.assistant_append_failed", error=str(e))

        if action is not None:
            outcome = await self._service.dispatch(self.user_id, action)
            self.action_count += 1

        success = reply_persisted and not (used_fallback and self._record_upstream_failure)
        await self._audit(text, response, success, used_fallback, action, outcome)
        self._speak(response)

        log.info(
            "session.turn_complete",
            turn=self.turn_count,
            fallback=used_fallback,
            action_type=action.type if action else None,
            dispatch_status=outcome.status.value if outcome else None,
            duration_ms=round((time.monotonic() - t0) * 1000, 1),
        )
        return TurnResult(
            response=response,
            action=action,
            outcome=outcome,
            used_fallback=used_fallback,
            success=success,
        )

    async def _call_upstream(self) -> str:
        history = [m.to_llm_message() for m in self._messages]
        try:
            return await asyncio.wait_for(self._chat.send(history), timeout=self._turn_timeout)
        except asyncio.TimeoutError as e:
            raise TurnTimeoutError(
                f"Upstream model did not answer within {self._turn_timeout}s"
            ) from e

    async def _audit(
        self,
        command: str,
        response: str,
        success: bool,
        used_fallback: bool,
        action: Optional[Action],
        outcome: Optional[DispatchOutcome],
    ) -> None:
        record = {
            "user_id": self.user_id,
            "command": command,
            "response": response,
            "success": success,
            "metadata": {
                "session_id": self.id,
                "conversation_id": self.conversation_id,
                "fallback": used_fallback,
                "action_type": action.type if action else None,
                "dispatch_status": outcome.status.value if outcome else None,
            },
        }
        try:
            await self._gateway.insert("command_history", record)
        except PersistenceError as e:
            log.warning("session.audit_failed", error=str(e))

    def _speak(self, text: str) -> None:
        if self._speaker is None or not self._voice_enabled:
            return
        fire_and_forget(self._speaker.speak(text), label="speech", tracker=self._speech_tasks)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _require_conversation(self) -> str:
        if self._conversation is None:
            raise NoActiveConversationError(self.user_id)
        return self._conversation["id"]

    @staticmethod
    def _row_to_message(row: dict[str, Any]) -> ConversationMessage:
        return ConversationMessage(
            id=row["id"],
            role=Role(row["role"]),
            content=row["content"],
            created_at=row["created_at"],
        )

    def __repr__(self) -> str:
        return (
            f"<ConversationSession id={self.id} user={self.user_id} "
            f"conversation={self.conversation_id} turns={self.turn_count}>"
        )
