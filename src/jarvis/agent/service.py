"""
agent/service.py — Command Service

Bundles the interpreter, dispatcher and fallback responder into one object
built at startup and shared by every ConversationSession.
"""

from __future__ import annotations

from jarvis.agent.actions import Action
from jarvis.agent.dispatcher import ActionDispatcher, DispatchOutcome
from jarvis.agent.fallback import FallbackResponder
from jarvis.agent.interpreter import InterpretedResponse, ResponseInterpreter
from jarvis.memory.gateway import PersistenceGateway


class CommandService:

    def __init__(
        self,
        interpreter: ResponseInterpreter,
        dispatcher: ActionDispatcher,
        fallback_responder: FallbackResponder,
    ):
        self.interpreter = interpreter
        self.dispatcher = dispatcher
        self.fallback_responder = fallback_responder

    @classmethod
    def create(
        cls,
        gateway: PersistenceGateway,
        assistant_name: str = "Jarvis",
        strategy: str = "greedy",
    ) -> "CommandService":
        return cls(
            interpreter=ResponseInterpreter(strategy=strategy),
            dispatcher=ActionDispatcher(gateway),
            fallback_responder=FallbackResponder(assistant_name),
        )

    @classmethod
    def from_settings(cls, settings, gateway: PersistenceGateway) -> "CommandService":
        return cls.create(
            gateway,
            assistant_name=settings.assistant.name,
            strategy=settings.interpreter.strategy,
        )

    def interpret(self, text: str) -> InterpretedResponse:
        return self.interpreter.interpret(text)

    async def dispatch(self, user_id: str, action: Action) -> DispatchOutcome:
        return await self.dispatcher.dispatch(user_id, action)

    def fallback(self, text: str) -> str:
        return self.fallback_responder.respond(text)
