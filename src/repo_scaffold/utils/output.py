"""Rich console output utilities."""

from typing import Callable, Optional

from rich.console import Console

from repo_scaffold.core.events import Event

console = Console()


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]✗[/red] {message}", style="red")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def print_event(event: Event, rewrite: Optional[Callable[[str], str]] = None) -> None:
    """Print a clone event with the style matching its type.

    Args:
        event: Event emitted by the clone pipeline
        rewrite: Optional transform applied to the message before printing
    """
    message = rewrite(event.message) if rewrite else event.message
    if event.type == "warn":
        print_warning(message)
    elif event.code == "SUCCESS":
        print_success(message)
    else:
        print_info(message)
