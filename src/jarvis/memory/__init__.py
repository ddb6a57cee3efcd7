"""
memory/__init__.py — Jarvis Persistence
"""

from __future__ import annotations

from jarvis.memory.gateway import TABLES, InMemoryGateway, PersistenceGateway, TableSpec
from jarvis.memory.sqlite_gateway import SQLiteGateway

__all__ = [
    "PersistenceGateway",
    "InMemoryGateway",
    "SQLiteGateway",
    "TableSpec",
    "TABLES",
    "gateway_from_settings",
]


def gateway_from_settings(settings) -> PersistenceGateway:
    """Build the configured gateway. Callers still need to `await init()`."""
    if settings.store.backend == "memory":
        return InMemoryGateway()
    return SQLiteGateway(settings.store.sqlite_path)
