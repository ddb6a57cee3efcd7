"""
agent/dispatcher.py — Action Dispatcher

Turns one Action into at most one gateway write.

    create_task      -> insert tasks
    create_reminder  -> insert reminders
    create_note      -> insert notes
    update_task      -> recognised, not implemented (no-op)
    delete_task      -> recognised, not implemented (no-op)
    anything else    -> ignored

dispatch() never raises. Missing or invalid parameters skip the write, and
gateway errors are logged and reported in the returned DispatchOutcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from jarvis.agent.actions import PARAMS_BY_TYPE, Action, ActionType
from jarvis.exceptions import PersistenceError
from jarvis.memory.gateway import PersistenceGateway
from jarvis.observability.logger import get_logger

log = get_logger(__name__)

_TABLE_BY_TYPE: dict[ActionType, str] = {
    ActionType.CREATE_TASK: "tasks",
    ActionType.CREATE_REMINDER: "reminders",
    ActionType.CREATE_NOTE: "notes",
}


class DispatchStatus(str, Enum):
    INSERTED = "inserted"
    SKIPPED = "skipped"          # required param missing or invalid
    UNSUPPORTED = "unsupported"  # known type with no effect yet
    IGNORED = "ignored"          # unknown type
    FAILED = "failed"            # gateway error


@dataclass(frozen=True)
class DispatchOutcome:
    action_type: str
    status: DispatchStatus
    table: Optional[str] = None
    record_id: Optional[str] = None
    reason: Optional[str] = None


class ActionDispatcher:

    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    async def dispatch(self, user_id: str, action: Action) -> DispatchOutcome:
        action_type = action.known_type
        if action_type is None:
            log.debug("dispatcher.ignored", action_type=action.type)
            return DispatchOutcome(action.type, DispatchStatus.IGNORED)

        params_model = PARAMS_BY_TYPE.get(action_type)
        if params_model is None:
            log.info("dispatcher.unsupported", action_type=action.type)
            return DispatchOutcome(
                action.type, DispatchStatus.UNSUPPORTED, reason="not implemented"
            )

        table = _TABLE_BY_TYPE[action_type]
        try:
            params = params_model.model_validate(action.params)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            log.info("dispatcher.skipped", action_type=action.type, fields=fields)
            return DispatchOutcome(
                action.type, DispatchStatus.SKIPPED, table=table,
                reason=f"invalid or missing: {', '.join(fields)}",
            )

        record = {"user_id": user_id, **params.model_dump()}
        try:
            row = await self._gateway.insert(table, record)
        except PersistenceError as e:
            log.warning("dispatcher.insert_failed", action_type=action.type,
                        table=table, error=str(e))
            return DispatchOutcome(action.type, DispatchStatus.FAILED, table=table, reason=str(e))

        log.info("dispatcher.inserted", action_type=action.type, table=table, id=row["id"])
        return DispatchOutcome(action.type, DispatchStatus.INSERTED, table=table, record_id=row["id"])
