"""
Console output for the reel reader, built on rich.

Status lines carry a coloured marker per level. Debug lines only appear when
``logging.verbose`` is set in the configuration.
"""

from typing import Optional

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.theme import Theme

from reelread.utils.config import config

theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "step": "blue bold",
        "highlight": "magenta",
        "debug": "dim",
        # the word currently being narrated
        "spoken": "bold reverse magenta",
    }
)

console = Console(theme=theme)

_MARKERS = {
    "info": "ℹ",
    "success": "✓",
    "warning": "⚠",
    "error": "✗",
}


def _emit(level: str, message: str) -> None:
    console.print(f"[{level}]{_MARKERS[level]}[/{level}] {message}")


def info(message: str) -> None:
    _emit("info", message)


def success(message: str) -> None:
    _emit("success", message)


def warning(message: str) -> None:
    _emit("warning", message)


def error(message: str) -> None:
    _emit("error", message)


def debug(message: str) -> None:
    """Print a dimmed diagnostic line, only in verbose mode."""
    if config.get("logging", "verbose", default=False):
        console.print(f"[debug]· {message}[/debug]", highlight=False)


def step(message: str, current: Optional[int] = None, total: Optional[int] = None) -> None:
    """Print a step, numbered as current/total when both are given."""
    marker = f"[{current}/{total}]" if current and total else "→"
    console.print(f"[step]{marker}[/step] {message}")


def header(title: str) -> None:
    """Print a ruled section title with blank lines around it."""
    console.print()
    console.rule(f"[bold]{title}[/bold]")
    console.print()


def create_progress() -> Progress:
    """Progress display for library work such as chunking a new book."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
