"""Console helpers shared by the tool CLIs."""

import functools
import sys
from typing import Callable, Optional

from rich import box
from rich.console import Console
from rich.table import Table

# Status messages go to stderr, results go to stdout
console = Console(stderr=True)
output_console = Console()


def info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]✗[/bold red] {message}")


def create_table(title: Optional[str] = None) -> Table:
    """Create a table with the common tool styling."""
    return Table(title=title, box=box.ROUNDED, header_style="bold magenta", show_lines=False)


def print_table(table: Table) -> None:
    """Print a table to stdout."""
    output_console.print(table)


def handle_errors(func: Callable) -> Callable:
    """
    Turn uncaught exceptions in a CLI entry point into an error line.

    Exits with status 1 on errors and 130 on Ctrl-C. SystemExit raised by
    the command itself passes through.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            warning("Interrupted")
            sys.exit(130)
        except Exception as e:
            error(f"{type(e).__name__}: {e}")
            sys.exit(1)

    return wrapper
