"""Terminal interaction: confirmations, prompts, spinners, status lines."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt


class Reporter(Protocol):
    """Sink for rule and step results."""

    def succeed(self, message: str) -> None: ...

    def fail(self, message: str) -> None: ...


class Operator(Reporter, Protocol):
    """The person at the terminal, as seen by the workflows."""

    def confirm(self, message: str) -> bool: ...

    def ask(self, message: str, *, default: str | None = None) -> str: ...

    def select(self, message: str, choices: Sequence[tuple[str, str]]) -> str: ...

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def status(self, message: str) -> AbstractContextManager[None]: ...


class ConsoleOperator:
    """:class:`Operator` backed by a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)

    def confirm(self, message: str) -> bool:
        return Confirm.ask(f"[yellow]?[/yellow] {message}", default=False, console=self.console)

    def ask(self, message: str, *, default: str | None = None) -> str:
        if default is None:
            answer = Prompt.ask(f"[yellow]?[/yellow] {message}", console=self.console)
        else:
            answer = Prompt.ask(
                f"[yellow]?[/yellow] {message}", default=default, console=self.console
            )
        return answer.strip()

    def select(self, message: str, choices: Sequence[tuple[str, str]]) -> str:
        """Present numbered *choices* (label, value) and return the chosen value."""

        if not choices:
            raise ValueError("select() needs at least one choice")
        self.console.print(f"[yellow]?[/yellow] {message}")
        for number, (label, value) in enumerate(choices, start=1):
            self.console.print(f"  [cyan]{number})[/cyan] {escape(label)} [dim]({escape(value)})[/dim]")
        picked = Prompt.ask(
            "  Choice",
            choices=[str(number) for number in range(1, len(choices) + 1)],
            default="1",
            console=self.console,
        )
        return choices[int(picked) - 1][1]

    def succeed(self, message: str) -> None:
        self.console.print(f"[green]✔[/green] {message}")

    def fail(self, message: str) -> None:
        self.console.print(f"[red]✖[/red] {message}")

    def info(self, message: str) -> None:
        self.console.print(message)

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]{message}[/yellow]")

    @contextmanager
    def status(self, message: str) -> Iterator[None]:
        with self.console.status(message):
            yield


__all__ = ["ConsoleOperator", "Operator", "Reporter"]
