"""
agent/actions.py — Action Data Model

An Action is the structured instruction a model embeds in its reply:

    {"action": {"type": "create_task", "params": {"title": "Buy milk"}}}

`type` is kept as a plain string so unknown values survive parsing and can be
ignored by the dispatcher. The typed *Params models below are only applied by
the dispatcher, for the matching type.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActionType(str, Enum):
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    CREATE_REMINDER = "create_reminder"
    CREATE_NOTE = "create_note"

    @classmethod
    def parse(cls, value: str) -> Optional["ActionType"]:
        """Return the enum member for value, or None if it is not recognised."""
        try:
            return cls(value)
        except ValueError:
            return None


class Action(BaseModel):
    """An embedded instruction. params is opaque until dispatch."""
    model_config = ConfigDict(frozen=True)

    type: str
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def known_type(self) -> Optional[ActionType]:
        return ActionType.parse(self.type)


# ─────────────────────────────────────────────────────────────────────────────
# Typed parameters
# ─────────────────────────────────────────────────────────────────────────────

def _required_text(v: Any) -> str:
    if not isinstance(v, str) or v == "":
        raise ValueError("must be a non-empty string")
    return v


class _Params(BaseModel):
    # Models are chatty; extra keys are dropped rather than rejected.
    model_config = ConfigDict(extra="ignore")


class CreateTaskParams(_Params):
    title: str
    description: str = ""
    priority: Literal["low", "medium", "high"] = "medium"
    due_date: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("description", "priority", mode="before")
    @classmethod
    def _null_to_default(cls, v: Any, info) -> Any:
        if v is None or v == "":
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def _blank_due_date(cls, v: Any) -> Any:
        return None if v == "" else v


class CreateReminderParams(_Params):
    title: str
    remind_at: str
    description: str = ""

    @field_validator("title", "remind_at", mode="before")
    @classmethod
    def _required(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, v: Any) -> Any:
        return "" if v is None else v


class CreateNoteParams(_Params):
    content: str
    title: str = "Quick Note"

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("title", mode="before")
    @classmethod
    def _blank_title(cls, v: Any) -> Any:
        if v is None or v == "":
            return "Quick Note"
        return v


PARAMS_BY_TYPE: dict[ActionType, type[_Params]] = {
    ActionType.CREATE_TASK: CreateTaskParams,
    ActionType.CREATE_REMINDER: CreateReminderParams,
    ActionType.CREATE_NOTE: CreateNoteParams,
}
