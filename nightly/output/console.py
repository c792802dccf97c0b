"""Console output abstraction.

Services print through ConsoleProtocol, never through rich directly. Jobs run
on worker threads, so every implementation serialises writes and can tag a
line with the job that produced it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "MockConsole",
    "OutputRecord",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    BOLD = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


class ConsoleProtocol(Protocol):
    """Protocol for console output.

    Implementations must be safe to call from several worker threads.
    """

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        """Print a message with optional styling."""
        ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None:
        """Print a section header."""
        ...

    def job(self, job_id: str, message: str, style: Style = Style.DEFAULT) -> None:
        """Print a line attributed to one build job."""
        ...

    def table(self, title: str, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        """Print a table (used for the matrix and the run summary)."""
        ...

    def newline(self) -> None: ...


class RichConsole:
    """Console implementation using the Rich library."""

    def __init__(self) -> None:
        # Import Rich lazily to avoid import-time dependency
        from rich.console import Console

        self._console = Console()
        self._lock = threading.Lock()
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.BOLD: "bold",
            Style.HEADER: "blue bold",
        }

    def _emit(self, message: str, style: str = "") -> None:
        with self._lock:
            if style:
                self._console.print(message, style=style, highlight=False)
            else:
                self._console.print(message, highlight=False)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._emit(message, self._style_map.get(style, ""))

    def success(self, message: str) -> None:
        self._emit(f"[green]OK[/green] {message}")

    def error(self, message: str) -> None:
        self._emit(f"[red bold]error:[/red bold] {message}")

    def warning(self, message: str) -> None:
        self._emit(f"[yellow]warning:[/yellow] {message}")

    def info(self, message: str) -> None:
        self._emit(f"[cyan]info:[/cyan] {message}")

    def header(self, message: str) -> None:
        self._emit(f"\n[blue bold]{message}[/blue bold]")

    def job(self, job_id: str, message: str, style: Style = Style.DEFAULT) -> None:
        from rich.markup import escape

        rich_style = self._style_map.get(style, "")
        body = escape(message)
        if rich_style:
            body = f"[{rich_style}]{body}[/{rich_style}]"
        self._emit(f"[magenta]\\[{escape(job_id)}][/magenta] {body}")

    def table(self, title: str, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        from rich.table import Table

        table = Table(title=title, title_justify="left")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        with self._lock:
            self._console.print(table)

    def newline(self) -> None:
        with self._lock:
            self._console.print()


@dataclass
class OutputRecord:
    """A single output record for MockConsole."""

    message: str
    style: Style
    job_id: str | None = None


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console implementation that captures output for testing."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _add(self, record: OutputRecord) -> None:
        with self._lock:
            self.outputs.append(record)

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._add(OutputRecord(message, style))

    def success(self, message: str) -> None:
        self._add(OutputRecord(f"OK {message}", Style.SUCCESS))

    def error(self, message: str) -> None:
        self._add(OutputRecord(f"error: {message}", Style.ERROR))

    def warning(self, message: str) -> None:
        self._add(OutputRecord(f"warning: {message}", Style.WARNING))

    def info(self, message: str) -> None:
        self._add(OutputRecord(f"info: {message}", Style.INFO))

    def header(self, message: str) -> None:
        self._add(OutputRecord(message, Style.HEADER))

    def job(self, job_id: str, message: str, style: Style = Style.DEFAULT) -> None:
        self._add(OutputRecord(message, style, job_id=job_id))

    def table(self, title: str, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        self._add(OutputRecord(title, Style.HEADER))
        for row in rows:
            self._add(OutputRecord(" | ".join(row), Style.DEFAULT))

    def newline(self) -> None:
        self._add(OutputRecord("", Style.DEFAULT))

    # Test helper methods

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style == Style.ERROR for o in self.outputs)

    def for_job(self, job_id: str) -> list[str]:
        """Messages attributed to one job, in order."""
        return [o.message for o in self.outputs if o.job_id == job_id]

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]
