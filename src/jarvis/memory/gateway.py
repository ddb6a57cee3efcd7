"""
memory/gateway.py — Persistence Gateway

The durable store behind a conversation: messages, tasks, reminders, notes and
the command audit log. The core only ever talks to it through four async
calls:

    insert(table, record)                               -> row
    query(table, filters, order_by, descending, limit)  -> [row, ...]
    update(table, record_id, changes)                   -> row | None
    delete(table, record_id)                            -> bool

Rows are plain dicts. insert() fills in `id`, timestamps and the per-table
column defaults, so callers pass only what they know.

Two implementations:
  - InMemoryGateway  (this module) — process-local, used by tests and
                                     `store.backend: memory`
  - SQLiteGateway    (sqlite_gateway.py) — aiosqlite-backed file store
"""

from __future__ import annotations

import copy
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from jarvis.exceptions import PersistenceError, UnknownTableError
from jarvis.observability.logger import get_logger

log = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Table catalogue
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TableSpec:
    """Column layout and insert-time defaults for one table."""
    name: str
    columns: tuple[str, ...]
    defaults: dict[str, Any] = field(default_factory=dict)
    stamp_columns: tuple[str, ...] = ()          # set to now() on insert
    touch_column: Optional[str] = None           # set to now() on update
    json_columns: frozenset[str] = frozenset()
    bool_columns: frozenset[str] = frozenset()


TABLES: dict[str, TableSpec] = {
    spec.name: spec
    for spec in (
        TableSpec(
            name="conversations",
            columns=("id", "user_id", "title", "context", "created_at", "updated_at"),
            defaults={"title": "New Conversation", "context": {}},
            stamp_columns=("created_at", "updated_at"),
            touch_column="updated_at",
            json_columns=frozenset({"context"}),
        ),
        TableSpec(
            name="messages",
            columns=("id", "conversation_id", "role", "content", "metadata", "created_at"),
            defaults={"metadata": {}},
            stamp_columns=("created_at",),
            json_columns=frozenset({"metadata"}),
        ),
        TableSpec(
            name="tasks",
            columns=(
                "id", "user_id", "title", "description", "status", "priority",
                "due_date", "completed_at", "created_at", "updated_at",
            ),
            defaults={
                "description": "", "status": "pending", "priority": "medium",
                "due_date": None, "completed_at": None,
            },
            stamp_columns=("created_at", "updated_at"),
            touch_column="updated_at",
        ),
        TableSpec(
            name="reminders",
            columns=(
                "id", "user_id", "title", "description", "remind_at",
                "is_recurring", "recurrence_pattern", "is_completed", "created_at",
            ),
            defaults={
                "description": "", "is_recurring": False,
                "recurrence_pattern": None, "is_completed": False,
            },
            stamp_columns=("created_at",),
            bool_columns=frozenset({"is_recurring", "is_completed"}),
        ),
        TableSpec(
            name="notes",
            columns=("id", "user_id", "title", "content", "tags", "created_at", "updated_at"),
            defaults={"title": "", "content": "", "tags": []},
            stamp_columns=("created_at", "updated_at"),
            touch_column="updated_at",
            json_columns=frozenset({"tags"}),
        ),
        TableSpec(
            name="command_history",
            columns=("id", "user_id", "command", "response", "success", "metadata", "executed_at"),
            defaults={"success": True, "metadata": {}},
            stamp_columns=("executed_at",),
            json_columns=frozenset({"metadata"}),
            bool_columns=frozenset({"success"}),
        ),
    )
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def table_spec(table: str) -> TableSpec:
    spec = TABLES.get(table)
    if spec is None:
        raise UnknownTableError(table)
    return spec


def check_columns(spec: TableSpec, names) -> None:
    unknown = [n for n in names if n not in spec.columns]
    if unknown:
        raise PersistenceError(f"Unknown column(s) for table '{spec.name}': {unknown}")


def build_row(spec: TableSpec, record: dict[str, Any]) -> dict[str, Any]:
    """Apply id, timestamp and column defaults to a caller-supplied record."""
    check_columns(spec, record.keys())
    now = utc_now_iso()
    row: dict[str, Any] = {}
    for column in spec.columns:
        if column in record:
            row[column] = copy.deepcopy(record[column])
        elif column == "id":
            row[column] = str(uuid.uuid4())
        elif column in spec.stamp_columns:
            row[column] = now
        elif column in spec.defaults:
            row[column] = copy.deepcopy(spec.defaults[column])
        else:
            row[column] = None
    return row


# ─────────────────────────────────────────────────────────────────────────────
# Interface
# ─────────────────────────────────────────────────────────────────────────────

class PersistenceGateway(ABC):
    """Async table store used by the conversation core."""

    async def init(self) -> None:
        """Open connections / create schema. No-op by default."""

    async def close(self) -> None:
        """Release resources. No-op by default."""

    @abstractmethod
    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it with defaults applied."""

    @abstractmethod
    async def query(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Equality-filtered, optionally ordered and limited row list."""

    @abstractmethod
    async def update(
        self, table: str, record_id: str, changes: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        """Apply changes to one row; return the updated row or None if absent."""

    @abstractmethod
    async def delete(self, table: str, record_id: str) -> bool:
        """Delete one row; return True if it existed."""


# ─────────────────────────────────────────────────────────────────────────────
# In-memory implementation
# ─────────────────────────────────────────────────────────────────────────────

class InMemoryGateway(PersistenceGateway):
    """
    Process-local gateway. Rows are deep-copied on the way in and out so
    callers can never mutate stored state. Ordering ties keep insertion order
    (Python's sort is stable).
    """

    def __init__(self) -> None:
        self._rows: dict[str, list[dict[str, Any]]] = {name: [] for name in TABLES}

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        spec = table_spec(table)
        row = build_row(spec, record)
        self._rows[table].append(row)
        log.debug("gateway.insert", table=table, id=row["id"])
        return copy.deepcopy(row)

    async def query(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        spec = table_spec(table)
        filters = filters or {}
        check_columns(spec, filters.keys())
        rows = [r for r in self._rows[table] if all(r.get(k) == v for k, v in filters.items())]
        if order_by is not None:
            check_columns(spec, [order_by])
            # NULLs sort first ascending, as in SQLite
            def key(pair):
                value = pair[1].get(order_by)
                return (value is not None, value if value is not None else "", pair[0])

            rows = [r for _, r in sorted(enumerate(rows), key=key, reverse=descending)]
        if limit is not None:
            rows = rows[:max(0, limit)]
        return copy.deepcopy(rows)

    async def update(
        self, table: str, record_id: str, changes: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        spec = table_spec(table)
        check_columns(spec, changes.keys())
        if "id" in changes:
            raise PersistenceError("Row id cannot be changed")
        for row in self._rows[table]:
            if row["id"] == record_id:
                row.update(copy.deepcopy(changes))
                if spec.touch_column and spec.touch_column not in changes:
                    row[spec.touch_column] = utc_now_iso()
                return copy.deepcopy(row)
        return None

    async def delete(self, table: str, record_id: str) -> bool:
        table_spec(table)
        before = len(self._rows[table])
        self._rows[table] = [r for r in self._rows[table] if r["id"] != record_id]
        return len(self._rows[table]) < before

    def count(self, table: str) -> int:
        table_spec(table)
        return len(self._rows[table])
