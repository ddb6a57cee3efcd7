"""
tests/unit/test_dispatcher.py — Action Dispatcher Tests

Covers:
  - Defaults applied for create_task / create_reminder / create_note
  - Missing, null, empty or invalid required params skip the write
  - update_task / delete_task are recognised no-ops
  - Unknown types are ignored
  - Gateway failures are reported, never raised
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from jarvis.agent.actions import Action
from jarvis.agent.dispatcher import ActionDispatcher, DispatchStatus
from jarvis.exceptions import PersistenceError
from jarvis.memory.gateway import InMemoryGateway


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def dispatcher(gateway) -> ActionDispatcher:
    return ActionDispatcher(gateway)


@pytest.mark.asyncio
class TestCreateTask:
    async def test_defaults_applied(self, dispatcher, gateway):
        outcome = await dispatcher.dispatch("u1", Action(type="create_task", params={"title": "X"}))
        assert outcome.status is DispatchStatus.INSERTED
        assert outcome.table == "tasks"

        rows = await gateway.query("tasks")
        assert len(rows) == 1
        row = rows[0]
        assert row["id"] == outcome.record_id
        assert row["user_id"] == "u1"
        assert row["title"] == "X"
        assert row["priority"] == "medium"
        assert row["description"] == ""
        assert row["due_date"] is None
        assert row["status"] == "pending"

    async def test_explicit_values_kept(self, dispatcher, gateway):
        params = {"title": "Ship", "priority": "high", "description": "v1",
                  "due_date": "2025-03-01T00:00:00Z", "extra": "dropped"}
        await dispatcher.dispatch("u1", Action(type="create_task", params=params))
        row = (await gateway.query("tasks"))[0]
        assert row["priority"] == "high"
        assert row["description"] == "v1"
        assert row["due_date"] == "2025-03-01T00:00:00Z"

    async def test_null_priority_defaults(self, dispatcher, gateway):
        await dispatcher.dispatch("u1", Action(type="create_task",
                                               params={"title": "X", "priority": None}))
        assert (await gateway.query("tasks"))[0]["priority"] == "medium"

    @pytest.mark.parametrize("params", [{}, {"title": None}, {"title": ""}])
    async def test_missing_title_skips(self, dispatcher, gateway, params):
        outcome = await dispatcher.dispatch("u1", Action(type="create_task", params=params))
        assert outcome.status is DispatchStatus.SKIPPED
        assert "title" in outcome.reason
        assert gateway.count("tasks") == 0

    async def test_invalid_priority_skips(self, dispatcher, gateway):
        outcome = await dispatcher.dispatch(
            "u1", Action(type="create_task", params={"title": "X", "priority": "urgent"})
        )
        assert outcome.status is DispatchStatus.SKIPPED
        assert gateway.count("tasks") == 0


@pytest.mark.asyncio
class TestCreateReminder:
    async def test_inserted_with_default_description(self, dispatcher, gateway):
        outcome = await dispatcher.dispatch("u1", Action(
            type="create_reminder",
            params={"title": "Call mom", "remind_at": "2025-01-01T09:00:00Z"},
        ))
        assert outcome.status is DispatchStatus.INSERTED
        row = (await gateway.query("reminders"))[0]
        assert row["description"] == ""
        assert row["is_completed"] is False

    async def test_missing_remind_at_skips(self, dispatcher, gateway):
        outcome = await dispatcher.dispatch("u1", Action(type="create_reminder", params={"title": "X"}))
        assert outcome.status is DispatchStatus.SKIPPED
        assert gateway.count("reminders") == 0


@pytest.mark.asyncio
class TestCreateNote:
    async def test_default_title(self, dispatcher, gateway):
        await dispatcher.dispatch("u1", Action(type="create_note", params={"content": "Pick up suit"}))
        row = (await gateway.query("notes"))[0]
        assert row["title"] == "Quick Note"
        assert row["content"] == "Pick up suit"
        assert row["tags"] == []

    async def test_missing_content_skips(self, dispatcher, gateway):
        outcome = await dispatcher.dispatch("u1", Action(type="create_note", params={"title": "T"}))
        assert outcome.status is DispatchStatus.SKIPPED
        assert gateway.count("notes") == 0


@pytest.mark.asyncio
class TestNoOps:
    @pytest.mark.parametrize("action_type", ["update_task", "delete_task"])
    async def test_unsupported(self, dispatcher, gateway, action_type):
        outcome = await dispatcher.dispatch("u1", Action(type=action_type, params={"id": "1"}))
        assert outcome.status is DispatchStatus.UNSUPPORTED
        assert gateway.count("tasks") == 0

    async def test_unknown_type_ignored(self, dispatcher):
        outcome = await dispatcher.dispatch("u1", Action(type="order_pizza", params={}))
        assert outcome.status is DispatchStatus.IGNORED
        assert outcome.action_type == "order_pizza"


@pytest.mark.asyncio
class TestGatewayFailure:
    async def test_insert_failure_reported_not_raised(self):
        gateway = InMemoryGateway()
        gateway.insert = AsyncMock(side_effect=PersistenceError("disk full"))
        dispatcher = ActionDispatcher(gateway)

        outcome = await dispatcher.dispatch("u1", Action(type="create_task", params={"title": "X"}))

        assert outcome.status is DispatchStatus.FAILED
        assert "disk full" in outcome.reason
        gateway.insert.assert_awaited_once()
