"""CLI application entry point."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich.logging import RichHandler
from rich.table import Table

from repo_scaffold.config.loader import load_settings
from repo_scaffold.config.schema import CloneMode, CloneOptions, Settings
from repo_scaffold.core.cloner import create_clone
from repo_scaffold.core.events import Event
from repo_scaffold.errors import DestinationNotEmptyError, RepoScaffoldError
from repo_scaffold.fetch.cache import CacheStore
from repo_scaffold.utils.output import (
    console,
    print_error,
    print_event,
    print_info,
)

app = typer.Typer(
    name="repo-scaffold",
    help="Copy a hosted repository template into a directory, without git history",
    no_args_is_help=True,
)


def _cli_message(message: str) -> str:
    """Rewrite option names in core messages to their CLI flag spelling."""
    return message.replace("options.", "--")


def _setup_logging(debug: bool) -> None:
    if not debug:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_settings_or_exit(config: Optional[Path]) -> Settings:
    try:
        return load_settings(config)
    except ValidationError as e:
        print_error("Configuration validation failed:")
        console.print(e)
        raise typer.Exit(1)
    except (OSError, yaml.YAMLError) as e:
        print_error(f"Failed to load config: {e}")
        raise typer.Exit(1)


def _print_event(event: Event) -> None:
    print_event(event, _cli_message)


@app.command()
def clone(
    src: str = typer.Argument(..., help="Repository specifier, e.g. user/repo#ref"),
    dest: Path = typer.Argument(Path("."), help="Destination directory"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite files in a non-empty destination"
    ),
    cache: bool = typer.Option(
        False, "--cache", "-c", help="Reuse cached commit hashes and archives"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show additional progress messages"
    ),
    mode: Optional[CloneMode] = typer.Option(
        None, "--mode", "-m", help="Fetch with a tar archive or git transport"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", help="Path to config file (overrides default search)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Clone a repository snapshot into DEST.

    Fetches the repository at the given ref (default branch when omitted)
    and writes its files into DEST, without version-control history.
    """
    _setup_logging(debug)
    settings = _load_settings_or_exit(config)

    options = CloneOptions(
        force=force,
        cache=cache,
        verbose=verbose,
        mode=mode or settings.default_mode,
    )

    try:
        cloner = create_clone(src, options, settings=settings)
        cloner.on("info", _print_event)
        cloner.on("warn", _print_event)
        asyncio.run(cloner.clone(dest))
    except DestinationNotEmptyError as e:
        print_error(_cli_message(str(e)))
        print_info("Re-run with --force to overwrite existing files")
        raise typer.Exit(1)
    except RepoScaffoldError as e:
        print_error(_cli_message(str(e)))
        raise typer.Exit(1)


@app.command()
def history(
    host: str = typer.Option("*", "--host", help="Only show hosts matching this glob"),
    config: Optional[Path] = typer.Option(
        None, "--config", help="Path to config file (overrides default search)"
    ),
):
    """List previously cloned references, most recently used first."""
    settings = _load_settings_or_exit(config)
    store = CacheStore(Path(settings.cache_dir))

    hashes = {
        reference.specifier: hash for reference, hash in store.enumerate(host)
    }
    accesses = store.enumerate_access(host)

    if not accesses and not hashes:
        print_info("No cached repositories")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Reference", style="green")
    table.add_column("Commit")
    table.add_column("Last Used")

    seen = set()
    for reference, millis in accesses:
        spec = reference.specifier
        seen.add(spec)
        used = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
        table.add_row(spec, hashes.get(spec, "")[:12], used.strftime("%Y-%m-%d %H:%M"))

    # Resolved but never recorded as accessed
    for spec, hash in hashes.items():
        if spec not in seen:
            table.add_row(spec, hash[:12], "")

    console.print(table)


if __name__ == "__main__":
    app()
