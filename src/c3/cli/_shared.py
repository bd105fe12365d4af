"""
Shared CLI state: Typer apps, console, options, and utilities.
"""

from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.console import Console

# Main app
app = typer.Typer(
    name="c3",
    help="Track Claude Code sessions across tmux panes",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage configuration",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(config_app, name="config")

# Console for rich output
console = Console()

# Server URL for client commands (defaults to config server.host/port)
ServerOption = Annotated[
    Optional[str],
    typer.Option(
        "--server",
        envvar="C3_SERVER_URL",
        help="URL of a running 'c3 serve' (default from config)",
    ),
]


def get_client(server: Optional[str] = None):
    """Client for the running server, honoring config.yaml host/port."""
    from ..config import get_engine_settings
    from ..web_api import C3Client, server_url

    if not server:
        settings = get_engine_settings()
        server = server_url(settings.host, settings.port)
    return C3Client(server)


def check_result(result) -> dict:
    """Exit 1 with the error when a client call failed, else return its data."""
    if not result.ok:
        rprint(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)
    return result.data
