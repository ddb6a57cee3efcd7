"""
interfaces/cli.py — Jarvis CLI Interface

Interactive REPL for the assistant. Uses rich for terminal rendering and
aioconsole for async input.

Features:
  - Free text runs a conversation turn
  - /tasks, /reminders, /notes list the user's rows
  - /done <task-id> completes a task, /delete <table> <id> removes a row
  - /history, /status, /help
  - exit / quit / Ctrl+D tear the session down

Usage:
    jarvis
    python -m jarvis --log-level DEBUG
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import aioconsole
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from jarvis.agent.service import CommandService
from jarvis.agent.session import ConversationSession, TurnResult
from jarvis.brain import LLMClientFactory, chat_client_from_settings
from jarvis.brain.chat_client import ChatClient
from jarvis.config.settings import Settings
from jarvis.exceptions import JarvisError, LLMError, PersistenceError
from jarvis.interfaces.speech import SpeechSynthesizer
from jarvis.memory import gateway_from_settings
from jarvis.memory.gateway import PersistenceGateway, utc_now_iso
from jarvis.observability.logger import get_logger

log = get_logger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────────

_HELP_TEXT = """
## Jarvis CLI Commands

| Command | Description |
|---------|-------------|
| *(any text)* | Talk to the assistant |
| `/tasks` | List your tasks |
| `/reminders` | List your reminders |
| `/notes` | List your notes |
| `/done <task-id>` | Mark a task completed |
| `/delete <tasks\\|reminders\\|notes> <id>` | Delete a row |
| `/history` | Show this conversation |
| `/status` | Show session status |
| `/help` | Show this help message |
| `exit` / `quit` / Ctrl+D | Exit Jarvis |

**Tips:**
- Ask naturally: "remind me to call mom tomorrow at 9" or "add a task to buy milk"
- IDs may be shortened to their first characters, as shown in the listings
"""

_DELETABLE_TABLES = ("tasks", "reminders", "notes")

_PRIORITY_COLOURS = {"high": "red", "medium": "yellow", "low": "green"}


def _short(record_id: str) -> str:
    return record_id[:8]


# ── CLI Runner ────────────────────────────────────────────────────────────────


class CLIInterface:
    """
    Interactive REPL for Jarvis.

    Wires together: Settings → Gateway → LLM → CommandService → Session
    then runs a Rich-powered async input loop. Collaborators may be injected
    (tests pass an InMemoryGateway and a mocked ChatClient).
    """

    def __init__(
        self,
        settings: Settings,
        console: Optional[Console] = None,
        gateway: Optional[PersistenceGateway] = None,
        chat_client: Optional[ChatClient] = None,
        speaker: Optional[SpeechSynthesizer] = None,
    ):
        self.settings = settings
        self.console = console or Console()
        self._gateway = gateway
        self._chat_client = chat_client
        self._speaker = speaker
        self._session: Optional[ConversationSession] = None
        self._shutdown = asyncio.Event()

    # ── Startup ───────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Initialize all components then run the REPL loop."""
        await self.init_components()
        self._print_banner()
        try:
            await self._repl_loop()
        finally:
            await self.cleanup()

    async def init_components(self) -> None:
        self.console.print("[dim]Initializing Jarvis...[/]")

        if self._gateway is None:
            self._gateway = gateway_from_settings(self.settings)
        await self._gateway.init()

        if self._chat_client is None:
            llm_client = LLMClientFactory.from_settings(self.settings)
            self._chat_client = chat_client_from_settings(self.settings, llm_client)

        service = CommandService.from_settings(self.settings, self._gateway)
        self._session = ConversationSession.from_settings(
            self.settings,
            gateway=self._gateway,
            chat_client=self._chat_client,
            service=service,
            speaker=self._speaker,
        )
        await self._session.get_or_create()

        log.info("cli.initialized", session_id=self._session.id,
                 conversation_id=self._session.conversation_id)
        self.console.print("[dim]✓ Ready[/]\n")

    # ── Banner & Help ─────────────────────────────────────────────────────────

    def _print_banner(self) -> None:
        name = self.settings.assistant.name
        self.console.print(
            Panel(
                f"[bold cyan]{name}[/] [dim]v{self.settings.assistant.version}[/]\n"
                f"[dim]{self.settings.llm.provider} / {self.settings.llm.model}"
                f" · {len(self._session.messages)} message(s) loaded[/]\n"
                f"[dim]Type /help for commands.[/]",
                border_style="cyan",
                padding=(0, 2),
            )
        )

    def _print_help(self) -> None:
        self.console.print(Markdown(_HELP_TEXT))

    # ── Loop ──────────────────────────────────────────────────────────────────

    async def _repl_loop(self) -> None:
        while not self._shutdown.is_set():
            try:
                user_input = await aioconsole.ainput(self._build_prompt())
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/]")
                break

            user_input = user_input.strip()
            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit"):
                self.console.print("[dim]Goodbye.[/]")
                break

            await self.handle(user_input)

    def _build_prompt(self) -> str:
        turns = self._session.turn_count if self._session else 0
        return f"\033[36m{self.settings.assistant.name}[{turns}]\033[0m> "

    # ── Command Dispatch ──────────────────────────────────────────────────────

    async def handle(self, raw: str) -> None:
        """Route one line of input to the correct handler."""
        if raw.startswith("/"):
            parts = raw.split(maxsplit=1)
            cmd = parts[0].lower()
            arg = parts[1].strip() if len(parts) > 1 else ""

            handlers = {
                "/help":      lambda _: self._print_help(),
                "/status":    lambda _: self._cmd_status(),
                "/history":   lambda _: self._cmd_history(),
                "/tasks":     lambda _: self._cmd_list("tasks"),
                "/reminders": lambda _: self._cmd_list("reminders"),
                "/notes":     lambda _: self._cmd_list("notes"),
                "/done":      self._cmd_done,
                "/delete":    self._cmd_delete,
            }

            handler = handlers.get(cmd)
            if handler is None:
                self.console.print(
                    f"[yellow]Unknown command: {cmd}. Type /help for commands.[/]"
                )
                return
            try:
                result = handler(arg)
                if asyncio.iscoroutine(result):
                    await result
            except PersistenceError as e:
                log.warning("cli.command_failed", command=cmd, error=str(e))
                self.console.print(f"[red]Storage error: {e}[/]")
        else:
            await self._cmd_ask(raw)

    # ── Commands ──────────────────────────────────────────────────────────────

    async def _cmd_ask(self, message: str) -> None:
        self.console.print()
        try:
            with self.console.status("[dim cyan]Thinking...[/]", spinner="dots"):
                result = await self._session.run_turn(message)
        except JarvisError as e:
            log.warning("cli.turn_failed", error=str(e), error_type=type(e).__name__)
            self.console.print(f"[red]{e}[/]")
            return
        self._render_turn(result)

    def _render_turn(self, result: TurnResult) -> None:
        text = result.response.strip()
        if text:
            title = "[yellow]offline[/]" if result.used_fallback else None
            self.console.print(
                Panel(Markdown(text), title=title, border_style="cyan", padding=(0, 2))
            )
        if result.outcome is not None:
            status = result.outcome.status.value
            colour = "green" if status == "inserted" else "dim"
            where = f" → {result.outcome.table}" if result.outcome.table else ""
            self.console.print(
                f"[{colour}]  {result.outcome.action_type}: {status}{where}[/]"
            )

    def _cmd_status(self) -> None:
        table = Table(box=box.SIMPLE, show_header=False)
        table.add_column("key", style="dim")
        table.add_column("value")
        for key, value in self._session.status_summary().items():
            table.add_row(key, str(value))
        table.add_row("provider", f"{self.settings.llm.provider} / {self.settings.llm.model}")
        table.add_row("store", self.settings.store.backend)
        self.console.print(table)

    def _cmd_history(self) -> None:
        messages = self._session.messages
        if not messages:
            self.console.print("[dim]No messages yet.[/]")
            return
        name = self.settings.assistant.name
        for m in messages:
            speaker = "[bold]You[/]" if m.role.value == "user" else f"[bold cyan]{name}[/]"
            self.console.print(f"{speaker}: {m.content}")

    async def _cmd_list(self, table_name: str) -> None:
        rows = await self._gateway.query(
            table_name,
            filters={"user_id": self._session.user_id},
            order_by="created_at",
            descending=True,
        )
        if not rows:
            self.console.print(f"[dim]No {table_name} yet.[/]")
            return

        table = Table(title=table_name.capitalize(), box=box.ROUNDED)
        table.add_column("id", style="dim")
        if table_name == "tasks":
            table.add_column("title")
            table.add_column("priority")
            table.add_column("status")
            table.add_column("due")
            for r in rows:
                colour = _PRIORITY_COLOURS.get(r["priority"], "white")
                title = r["title"] if r["status"] != "completed" else f"[strike]{r['title']}[/]"
                table.add_row(_short(r["id"]), title, f"[{colour}]{r['priority']}[/]",
                              r["status"], r.get("due_date") or "")
        elif table_name == "reminders":
            table.add_column("title")
            table.add_column("remind at")
            table.add_column("done")
            for r in rows:
                table.add_row(_short(r["id"]), r["title"], r["remind_at"] or "",
                              "✓" if r["is_completed"] else "")
        else:
            table.add_column("title")
            table.add_column("content")
            for r in rows:
                table.add_row(_short(r["id"]), r["title"] or "", r["content"] or "")
        self.console.print(table)

    async def _resolve_id(self, table_name: str, prefix: str) -> Optional[str]:
        rows = await self._gateway.query(table_name, filters={"user_id": self._session.user_id})
        matches = [r["id"] for r in rows if r["id"].startswith(prefix)]
        if len(matches) == 1:
            return matches[0]
        if not matches:
            self.console.print(f"[yellow]No {table_name} row matches '{prefix}'.[/]")
        else:
            self.console.print(f"[yellow]'{prefix}' is ambiguous ({len(matches)} matches).[/]")
        return None

    async def _cmd_done(self, arg: str) -> None:
        if not arg:
            self.console.print("[yellow]Usage: /done <task-id>[/]")
            return
        record_id = await self._resolve_id("tasks", arg)
        if record_id is None:
            return
        row = await self._gateway.update(
            "tasks", record_id, {"status": "completed", "completed_at": utc_now_iso()}
        )
        if row is not None:
            log.info("cli.task_completed", id=record_id)
            self.console.print(f"[green]✓ Completed: {row['title']}[/]")

    async def _cmd_delete(self, arg: str) -> None:
        parts = arg.split()
        if len(parts) != 2 or parts[0] not in _DELETABLE_TABLES:
            self.console.print("[yellow]Usage: /delete <tasks|reminders|notes> <id>[/]")
            return
        table_name, prefix = parts
        record_id = await self._resolve_id(table_name, prefix)
        if record_id is None:
            return
        if await self._gateway.delete(table_name, record_id):
            log.info("cli.row_deleted", table=table_name, id=record_id)
            self.console.print(f"[green]✓ Deleted from {table_name}[/]")

    # ── Cleanup ───────────────────────────────────────────────────────────────

    async def cleanup(self) -> None:
        """Close the session and the gateway."""
        if self._session:
            await self._session.close()
        if self._gateway:
            try:
                await self._gateway.close()
            except PersistenceError as e:
                log.debug("cli.gateway_close_failed", error=str(e))
        log.info("cli.shutdown", session_id=self._session.id if self._session else None)

    @property
    def session(self) -> Optional[ConversationSession]:
        return self._session


# ── Public entry point ────────────────────────────────────────────────────────


async def run_cli(settings: Settings, log: Any) -> None:
    """Entry point called from main.py."""
    cli = CLIInterface(settings=settings)

    log.info("cli.starting")
    try:
        await cli.start()
    except LLMError as e:
        cli.console.print(f"[red]❌ Failed to create LLM client: {e}[/]")
        raise
    except KeyboardInterrupt:
        log.info("cli.interrupted")
    finally:
        log.info("cli.stopped")
