"""Console selection prompts built on Rich."""

from typing import List, Optional, Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

from ..core.selector import Selector


def parse_selection(text: str, count: int) -> List[int]:
    """Parse ``"1,3,5-7"`` or ``"all"`` into sorted zero-based indices.

    Raises:
        ValueError: If an entry is not a number or range within 1..count
    """
    text = text.strip().lower()
    if text in ("all", "*"):
        return list(range(count))

    chosen = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
            if start > end:
                raise ValueError(f"Invalid range: {part}")
            numbers = range(start, end + 1)
        else:
            numbers = [int(part)]
        for number in numbers:
            if not 1 <= number <= count:
                raise ValueError(f"Selection out of range: {number}")
            chosen.add(number - 1)

    if not chosen:
        raise ValueError("Nothing selected")
    return sorted(chosen)


class ConsoleSelector(Selector):
    """Prompts the operator on the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def _show_options(self, title: str, options: Sequence[str]) -> None:
        table = Table(title=title)
        table.add_column("#", style="cyan", width=4)
        table.add_column("Name", style="green")
        for number, option in enumerate(options, 1):
            table.add_row(str(number), option)
        self.console.print(table)

    def select_one(self, prompt: str, options: Sequence[str]) -> int:
        if not options:
            raise ValueError("Nothing to select from")
        self._show_options(prompt, options)

        while True:
            choice = Prompt.ask(
                f"[cyan]Select (1-{len(options)})[/cyan]",
                default="1",
                console=self.console
            )
            try:
                index = int(choice) - 1
            except ValueError:
                self.console.print("[red]Invalid selection. Please enter a number.[/red]")
                continue
            if 0 <= index < len(options):
                return index
            self.console.print("[red]Invalid selection. Please try again.[/red]")

    def select_many(self, prompt: str, options: Sequence[str]) -> List[int]:
        if not options:
            return []
        self._show_options(prompt, options)

        while True:
            choice = Prompt.ask(
                "[cyan]Select databases (e.g. 1,3,5-7 or 'all')[/cyan]",
                console=self.console
            )
            try:
                return parse_selection(choice, len(options))
            except ValueError as e:
                self.console.print(f"[red]{e}. Please try again.[/red]")

    def confirm(self, prompt: str, default: bool = False) -> bool:
        return Confirm.ask(prompt, default=default, console=self.console)
