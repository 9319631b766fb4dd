"""Editor/UI collaborator: the interface the commands talk to, and a console implementation."""

import asyncio
from typing import Literal, Optional, Protocol, Sequence

import click
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from gpspec_outline import Position

from specprompt.models.pick import PickItem


NotifyKind = Literal["info", "warning", "error"]


class EditorUI(Protocol):
    """
    User-facing operations needed by FragmentCommands.

    Every prompt returns None when the user cancels.
    """

    async def choose_pick(self, items: Sequence[PickItem], title: str) -> Optional[PickItem]:
        ...

    async def prompt_text(self, title: str, description: str = "") -> Optional[str]:
        ...

    async def notify(self, kind: NotifyKind, message: str) -> None:
        ...

    async def reveal_position(self, filename: str, position: Position) -> None:
        ...

    async def open_external(self, url: str) -> None:
        ...


_NOTIFY_STYLES = {
    "info": "green",
    "warning": "yellow",
    "error": "bold red",
}


class ConsoleUI:
    """
    Terminal implementation of EditorUI using Rich.

    Pickers are numbered tables; an empty answer (or end of input) cancels.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    async def choose_pick(self, items: Sequence[PickItem], title: str) -> Optional[PickItem]:
        """Show numbered items (with group separators) and read a choice."""
        if not items:
            return None

        table = Table(title=title, show_header=False, box=None)
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Item", style="bold")
        table.add_column("Description", style="dim")

        group = None
        for i, item in enumerate(items, 1):
            item_group = item.group if item.kind == "template" else ""
            if item_group != group:
                if item_group:
                    table.add_row("", f"[magenta]{item_group}[/magenta]", "")
                elif i > 1:
                    table.add_section()
                group = item_group
            table.add_row(str(i), item.label, item.description)

        self.console.print(table)

        while True:
            answer = await self._ask("[bold cyan]Choice[/bold cyan] (empty to cancel)")
            if not answer:
                return None
            if answer.isdigit() and 1 <= int(answer) <= len(items):
                return items[int(answer) - 1]
            self.console.print(f"[red]Enter a number between 1 and {len(items)}[/red]")

    async def prompt_text(self, title: str, description: str = "") -> Optional[str]:
        """Ask for one line of free text."""
        if description:
            self.console.print(f"[dim]{description}[/dim]")
        answer = await self._ask(f"[bold cyan]{title}[/bold cyan]")
        return answer or None

    async def notify(self, kind: NotifyKind, message: str) -> None:
        style = _NOTIFY_STYLES.get(kind, "")
        self.console.print(message, style=style, markup=False, highlight=False)

    async def reveal_position(self, filename: str, position: Position) -> None:
        line, column = position
        self.console.print(f"{filename}:{line + 1}:{column + 1}", style="bold", highlight=False)

    async def open_external(self, url: str) -> None:
        self.console.print(f"Opening {url}", style="dim")
        click.launch(url)

    def write_output(self, chunk: str) -> None:
        """Print a chunk of streamed generation output."""
        self.console.print(chunk, end="", markup=False, highlight=False, soft_wrap=True)

    async def _ask(self, prompt: str) -> Optional[str]:
        try:
            answer = await asyncio.to_thread(
                Prompt.ask, prompt, console=self.console, default="", show_default=False
            )
        except EOFError:
            return None
        return answer.strip()
