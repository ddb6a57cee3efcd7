"""
tests/unit/test_cli.py — CLI Interface Tests

Drives CLIInterface.handle() with an InMemoryGateway, a mocked ChatClient and
a Rich console writing to a string buffer.
"""

from __future__ import annotations

import io
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from rich.console import Console

from jarvis.config.settings import Settings, StoreConfig
from jarvis.exceptions import LLMConnectionError
from jarvis.interfaces.cli import CLIInterface
from jarvis.memory.gateway import InMemoryGateway


def _output(cli: CLIInterface) -> str:
    return cli.console.file.getvalue()


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def chat() -> MagicMock:
    chat = MagicMock()
    chat.send = AsyncMock(
        return_value='On it. {"action":{"type":"create_task","params":{"title":"Buy milk"}}}'
    )
    return chat


@pytest_asyncio.fixture
async def cli(gateway, chat):
    settings = Settings(store=StoreConfig(backend="memory"))
    console = Console(file=io.StringIO(), width=120, force_terminal=False)
    interface = CLIInterface(settings, console=console, gateway=gateway, chat_client=chat)
    await interface.init_components()
    yield interface
    await interface.cleanup()


@pytest.mark.asyncio
class TestCLI:
    async def test_free_text_runs_turn(self, cli, gateway):
        await cli.handle("add buy milk to my list")
        out = _output(cli)
        assert "On it." in out
        assert "create_task: inserted" in out
        assert gateway.count("tasks") == 1
        assert cli.session.turn_count == 1

    async def test_fallback_turn_marked_offline(self, cli, chat):
        chat.send = AsyncMock(side_effect=LLMConnectionError("down"))
        await cli.handle("hello")
        out = _output(cli)
        assert "offline" in out
        assert "Hello! I am Jarvis" in out

    async def test_tasks_listing(self, cli):
        await cli.handle("add buy milk")
        await cli.handle("/tasks")
        out = _output(cli)
        assert "Buy milk" in out
        assert "medium" in out

    async def test_empty_listing(self, cli):
        await cli.handle("/notes")
        assert "No notes yet." in _output(cli)

    async def test_done_marks_completed(self, cli, gateway):
        await cli.handle("add buy milk")
        task = (await gateway.query("tasks"))[0]
        await cli.handle(f"/done {task['id'][:8]}")
        updated = (await gateway.query("tasks"))[0]
        assert updated["status"] == "completed"
        assert updated["completed_at"] is not None
        assert "Completed: Buy milk" in _output(cli)

    async def test_done_unknown_id(self, cli):
        await cli.handle("/done deadbeef")
        assert "No tasks row matches" in _output(cli)

    async def test_delete(self, cli, gateway):
        note = await gateway.insert("notes", {"user_id": "local", "content": "c"})
        await cli.handle(f"/delete notes {note['id']}")
        assert gateway.count("notes") == 0

    async def test_delete_usage(self, cli):
        await cli.handle("/delete conversations abc")
        assert "Usage: /delete" in _output(cli)

    async def test_history_and_status(self, cli):
        await cli.handle("add buy milk")
        await cli.handle("/history")
        await cli.handle("/status")
        out = _output(cli)
        assert "add buy milk" in out
        assert "turns" in out

    async def test_unknown_command(self, cli):
        await cli.handle("/launch")
        assert "Unknown command: /launch" in _output(cli)

    async def test_cleanup_closes_session(self, cli):
        await cli.cleanup()
        assert cli.session.is_closed
