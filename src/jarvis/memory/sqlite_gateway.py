"""
memory/sqlite_gateway.py — SQLite Persistence Gateway

aiosqlite-backed implementation of PersistenceGateway. One file holds every
table the assistant uses:

  - conversations   : one row per conversation (title, context)
  - messages        : ordered user/assistant turns
  - tasks           : to-do items
  - reminders       : time-bound reminders
  - notes           : free-form notes (tags stored as JSON)
  - command_history : per-turn audit log (metadata stored as JSON)

Usage:
    gateway = SQLiteGateway("./data/sqlite/jarvis.db")
    await gateway.init()
    row = await gateway.insert("tasks", {"user_id": "local", "title": "Buy milk"})
    rows = await gateway.query("tasks", {"user_id": "local"}, order_by="created_at")
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from jarvis.exceptions import PersistenceError
from jarvis.memory.gateway import (
    PersistenceGateway,
    TableSpec,
    build_row,
    check_columns,
    table_spec,
    utc_now_iso,
)
from jarvis.observability.logger import get_logger

log = get_logger(__name__)

# ── Schema DDL ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS conversations (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    title       TEXT NOT NULL DEFAULT 'New Conversation',
    context     TEXT DEFAULT '{}',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id               TEXT PRIMARY KEY,
    conversation_id  TEXT NOT NULL,
    role             TEXT NOT NULL,      -- 'user' | 'assistant' | 'system'
    content          TEXT NOT NULL,
    metadata         TEXT DEFAULT '{}',
    created_at       TEXT NOT NULL,
    FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS tasks (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    title         TEXT NOT NULL,
    description   TEXT DEFAULT '',
    status        TEXT NOT NULL DEFAULT 'pending',   -- 'pending' | 'in_progress' | 'completed'
    priority      TEXT NOT NULL DEFAULT 'medium',    -- 'low' | 'medium' | 'high'
    due_date      TEXT,
    completed_at  TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS reminders (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    title               TEXT NOT NULL,
    description         TEXT DEFAULT '',
    remind_at           TEXT NOT NULL,
    is_recurring        INTEGER DEFAULT 0,
    recurrence_pattern  TEXT,
    is_completed        INTEGER DEFAULT 0,
    created_at          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS notes (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    title       TEXT DEFAULT '',
    content     TEXT DEFAULT '',
    tags        TEXT DEFAULT '[]',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS command_history (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    command      TEXT NOT NULL,
    response     TEXT,
    success      INTEGER DEFAULT 1,
    metadata     TEXT DEFAULT '{}',
    executed_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_conversations_user ON conversations(user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, created_at);
CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id);
CREATE INDEX IF NOT EXISTS idx_reminders_user ON reminders(user_id);
CREATE INDEX IF NOT EXISTS idx_notes_user ON notes(user_id);
CREATE INDEX IF NOT EXISTS idx_command_history_user ON command_history(user_id);
"""


class SQLiteGateway(PersistenceGateway):
    """Async SQLite-backed persistence gateway."""

    def __init__(self, db_path: str = "./data/sqlite/jarvis.db"):
        self.db_path = db_path if db_path == ":memory:" else str(Path(db_path).expanduser())
        self._db: Optional[aiosqlite.Connection] = None

    async def init(self) -> None:
        """Create the database file and tables if they don't exist."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.executescript(_SCHEMA)
            await self._db.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database at {self.db_path}: {e}") from e
        log.info("sqlite_gateway.initialized", db_path=self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _require_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise PersistenceError(
                "SQLiteGateway is not initialised (or has been closed). "
                "Call `await gateway.init()` before use."
            )
        return self._db

    # ── Encoding ──────────────────────────────────────────────────────────────

    @staticmethod
    def _encode(spec: TableSpec, column: str, value: Any) -> Any:
        if value is None:
            return None
        if column in spec.json_columns:
            return json.dumps(value)
        if column in spec.bool_columns:
            return 1 if value else 0
        return value

    @staticmethod
    def _decode(spec: TableSpec, row: aiosqlite.Row) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for column in spec.columns:
            value = row[column]
            if value is not None and column in spec.json_columns:
                try:
                    value = json.loads(value)
                except json.JSONDecodeError:
                    log.warning("sqlite_gateway.bad_json", table=spec.name, column=column)
            elif value is not None and column in spec.bool_columns:
                value = bool(value)
            out[column] = value
        return out

    # ── Operations ────────────────────────────────────────────────────────────

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        spec = table_spec(table)
        db = self._require_db()
        row = build_row(spec, record)
        columns = ", ".join(spec.columns)
        placeholders = ", ".join("?" for _ in spec.columns)
        params = tuple(self._encode(spec, c, row[c]) for c in spec.columns)
        try:
            await db.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", params
            )
            await db.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Insert into '{table}' failed: {e}") from e
        log.debug("sqlite_gateway.insert", table=table, id=row["id"])
        return row

    async def query(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        spec = table_spec(table)
        db = self._require_db()
        filters = filters or {}
        check_columns(spec, filters.keys())

        sql = f"SELECT * FROM {table}"
        params: list[Any] = []
        clauses = []
        for column, value in filters.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = ?")
                params.append(self._encode(spec, column, value))
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        if order_by is not None:
            check_columns(spec, [order_by])
            direction = "DESC" if descending else "ASC"
            # rowid breaks timestamp ties in insertion order
            sql += f" ORDER BY {order_by} {direction}, rowid {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(max(0, limit))

        try:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Query on '{table}' failed: {e}") from e
        return [self._decode(spec, r) for r in rows]

    async def update(
        self, table: str, record_id: str, changes: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        spec = table_spec(table)
        db = self._require_db()
        check_columns(spec, changes.keys())
        if "id" in changes:
            raise PersistenceError("Row id cannot be changed")

        changes = dict(changes)
        if spec.touch_column and spec.touch_column not in changes:
            changes[spec.touch_column] = utc_now_iso()
        if not changes:
            rows = await self.query(table, {"id": record_id}, limit=1)
            return rows[0] if rows else None

        assignments = ", ".join(f"{c} = ?" for c in changes)
        params = [self._encode(spec, c, v) for c, v in changes.items()]
        params.append(record_id)
        try:
            cursor = await db.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?", params
            )
            await db.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Update on '{table}' failed: {e}") from e
        if cursor.rowcount == 0:
            return None
        rows = await self.query(table, {"id": record_id}, limit=1)
        return rows[0] if rows else None

    async def delete(self, table: str, record_id: str) -> bool:
        table_spec(table)
        db = self._require_db()
        try:
            cursor = await db.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            await db.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Delete from '{table}' failed: {e}") from e
        return cursor.rowcount > 0
