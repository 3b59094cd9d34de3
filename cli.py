#!/usr/bin/env python3
"""
NoteSync CLI.

Command-line entry point for the notes client.
Built with Typer for type-safe commands and Rich for formatted output.

Usage:
    python cli.py --help              # Show help
    python cli.py shell               # Interactive shell (mode from features.yaml)
    python cli.py shell --demo        # Interactive shell against in-memory gateways
    python cli.py shell --http        # Interactive shell against the notes service
    python cli.py info                # Show app info
    python cli.py config [section]    # Show configuration

Options:
    --verbose, -v     Enable verbose output
    --debug, -d       Enable debug mode (detailed logging)
    --help            Show help message
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Add project root to path for absolute imports
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

app = typer.Typer(
    name="cli",
    help="NoteSync CLI - manage your notes from the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


@app.command()
def shell(
    demo: Optional[bool] = typer.Option(
        None,
        "--demo/--http",
        help="Use in-memory gateways (--demo) or the notes service (--http). Defaults to features.yaml.",
    ),
) -> None:
    """
    Start interactive shell mode.

    Sign in, browse, filter and edit notes from a REPL.
    """
    from notesync.app import create_app
    from notesync.cli.shell import run_shell

    asyncio.run(run_shell(create_app(demo_mode=demo)))


@app.command()
def info() -> None:
    """
    Display application information.

    Shows app name, version, and the service the client talks to.
    """
    try:
        from notesync.core.config import get_app_config

        settings = get_app_config().application
        mode = "demo (in-memory)" if get_app_config().features.demo_mode else settings.api.base_url

        console.print(Panel(
            f"[bold]{settings.name}[/bold]\n"
            f"Version: {settings.version}\n"
            f"Description: {settings.description}\n"
            f"Environment: {settings.environment}\n"
            f"Service: {mode}",
            title="Application Info",
        ))

    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def config(
    section: Optional[str] = typer.Argument(None, help="Config section to show (application, logging, features)"),
) -> None:
    """
    Display configuration settings.

    Shows all configuration or a specific section.
    """
    try:
        from notesync.core.config import get_app_config

        app_config = get_app_config()
        sections = {
            "application": app_config.application.model_dump(),
            "logging": app_config.logging.model_dump(),
            "features": app_config.features.model_dump(),
        }
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        raise typer.Exit(1)

    if section:
        if section not in sections:
            console.print(f"[red]Unknown section: {section}[/red]")
            console.print(f"Available sections: {', '.join(sections.keys())}")
            raise typer.Exit(1)
        _display_config_section(section, sections[section])
        return

    for name, data in sections.items():
        _display_config_section(name, data)
        console.print()


def _display_config_section(name: str, data: dict) -> None:
    table = Table(title=name.capitalize(), show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in _flatten(data):
        table.add_row(key, str(value))
    console.print(table)


def _flatten(data: dict, prefix: str = "") -> list[tuple[str, object]]:
    rows: list[tuple[str, object]] = []
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            rows.extend(_flatten(value, f"{name}."))
        else:
            rows.append((name, value))
    return rows


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output (INFO level logging)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug mode (DEBUG level logging)",
    ),
) -> None:
    """
    NoteSync CLI.

    Interactive notes client with session handling and optimistic updates.
    """
    from notesync.core.config import validate_project_root
    from notesync.core.logging import setup_logging

    validate_project_root()

    if debug:
        setup_logging(level="DEBUG", format_type="console")
        console.print("[dim]Debug mode enabled[/dim]")
    elif verbose:
        setup_logging(level="INFO", format_type="console")
    else:
        setup_logging(level="WARNING", format_type="console")


if __name__ == "__main__":
    app()
