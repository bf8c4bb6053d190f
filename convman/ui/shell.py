"""Interactive terminal REPL using Rich."""

from __future__ import annotations

import asyncio
import logging

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from convman.conversation.manager import ConversationManager, DirectSetup
from convman.errors import ConvmanError
from convman.llm.base import Role

logger = logging.getLogger(__name__)

HELP_TEXT = """\
Commands:
  /new        — Start a new conversation (keeps the current system prompt)
  /history    — Show the stored history of the active conversation
  /turns      — Show user/assistant turn counts and token usage
  /delete     — Delete the active conversation, keeping the system prompt
  /save       — Save the active conversation now
  /help       — Show this help message
  /quit       — Exit

Anything else is sent to the assistant.\
"""

_ROLE_STYLES = {
    Role.SYSTEM: "dim",
    Role.USER: "bold cyan",
    Role.ASSISTANT: "bold green",
}


class InteractiveShell:
    """Rich-based chat REPL over a ConversationManager."""

    def __init__(self, manager: ConversationManager, console: Console | None = None) -> None:
        self._manager = manager
        self._console = console or Console()
        self._running = False

    async def run(self) -> None:
        """Main REPL loop."""
        self._running = True
        self._console.print(Panel(
            f"User [bold]{self._manager.user_id}[/bold] — "
            f"{self._manager.conversation_name}",
            title="convman",
            border_style="cyan",
        ))
        self._console.print("[dim]Type /help for commands.[/dim]\n")

        while self._running:
            try:
                user_input = await self._prompt()
            except (EOFError, KeyboardInterrupt):
                self._console.print("\n[dim]Goodbye![/dim]")
                break

            if not user_input.strip():
                continue

            await self.handle_input(user_input.strip())

    async def _prompt(self) -> str:
        """Read user input without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self._console.input("[bold cyan]you>[/bold cyan] "),
        )

    async def handle_input(self, text: str) -> None:
        if text.startswith("/"):
            self._handle_command(text)
        else:
            await self._handle_query(text)

    def _handle_command(self, text: str) -> None:
        cmd = text.split()[0].lower()

        if cmd in ("/quit", "/exit"):
            self._running = False

        elif cmd == "/help":
            self._console.print(Panel(HELP_TEXT, title="Help", border_style="cyan"))

        elif cmd == "/new":
            system = self._manager.system_messages()
            generation = self._manager.generation
            conversation_id = self._manager.start_new_conversation()
            if system:
                self._manager.configure_system(DirectSetup(
                    prompt=system[0].content,
                    model=generation.model,
                    temperature=generation.temperature,
                    conversation_max_tokens=generation.conversation_max_tokens,
                    response_tokens=generation.response_tokens,
                ))
            self._console.print(f"[dim]Started conversation {conversation_id}.[/dim]")

        elif cmd == "/history":
            history = self._manager.get_history()
            if not history:
                self._console.print("[yellow]Nothing saved for this conversation yet.[/yellow]")
                return
            for msg in history:
                style = _ROLE_STYLES.get(msg.role, "")
                self._console.print(f"[{style}]{msg.role.value}[/{style}]: {msg.content}")

        elif cmd == "/turns":
            turns = self._manager.count_turns()
            table = Table(show_header=False, box=None)
            table.add_row("Conversation", str(self._manager.conversation_id))
            table.add_row("User messages", str(turns.user_messages))
            table.add_row("Assistant responses", str(turns.assistant_responses))
            table.add_row(
                "Tokens",
                f"{self._manager.total_tokens}/"
                f"{self._manager.generation.conversation_max_tokens}",
            )
            self._console.print(table)

        elif cmd == "/delete":
            self._manager.delete_history()
            self._console.print("[dim]Conversation deleted, system prompt kept.[/dim]")

        elif cmd == "/save":
            self._manager.save_history()
            self._console.print("[dim]Saved.[/dim]")

        else:
            self._console.print(f"[yellow]Unknown command: {cmd}. Type /help.[/yellow]")

    async def _handle_query(self, text: str) -> None:
        """Send a message to the assistant and persist the turn."""
        try:
            self._manager.add_message(text)
            with self._console.status("Thinking..."):
                response = await self._manager.request_completion()
        except ConvmanError as exc:
            self._console.print(f"[red]Error: {exc}[/red]")
            return

        self._console.print()
        self._console.print(Markdown(response))
        self._console.print()
        self._manager.save_history()
        self._manager.log_response()
