"""Rich console output helpers."""

from rich.console import Console
from rich.markup import escape

console = Console(highlight=False, soft_wrap=True)


def fail(msg: str):
    """Print failure message."""
    console.print(f"  [red]✗[/red] {escape(msg)}")


def line(msg: str = ""):
    """Print plain text without markup interpretation."""
    console.print(msg, markup=False)
