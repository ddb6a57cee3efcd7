"""
agent/utils.py — Shared Agent Utilities
"""

from __future__ import annotations

import asyncio
from typing import Optional

from jarvis.observability.logger import get_logger

log = get_logger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Fire-and-forget helper
# ─────────────────────────────────────────────────────────────────────────────

# Strong references so asyncio cannot GC a task mid-flight.
_BG_TASKS: set[asyncio.Task] = set()


def fire_and_forget(
    coro,
    label: str = "bg_task",
    tracker: Optional[set[asyncio.Task]] = None,
) -> asyncio.Task:
    """
    Schedule a coroutine as a background task.

    Failures are logged as "bg_task.failed" and never propagate. If a tracker
    set is given the task is also held there until it finishes, so its owner
    can cancel it later.
    """
    task = asyncio.create_task(coro)
    _BG_TASKS.add(task)
    if tracker is not None:
        tracker.add(task)

    def _on_done(t: asyncio.Task) -> None:
        _BG_TASKS.discard(t)
        if tracker is not None:
            tracker.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            log.warning(
                "bg_task.failed",
                label=label,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    task.add_done_callback(_on_done)
    return task
