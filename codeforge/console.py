"""Rich console shared by the command-line tools."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.theme import Theme

_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "green",
        "prompt": "bold green",
        "path": "magenta",
    }
)

console = Console(theme=_THEME)


def print_error(message: str, *, title: str = "Error") -> None:
    """Show a failure the user has to act on (missing key, backend down, ...)."""

    console.print(Panel(message or "Unknown error", title=title, style="error"))


__all__ = ["console", "print_error"]
