"""
Config commands: init, show, path.
"""

from typing import Annotated

import typer
from rich import print as rprint

from ._shared import config_app


CONFIG_TEMPLATE = """\
# c3 configuration
# Location: ~/.c3/config.yaml

# Where 'c3 serve' listens (hooks post to http://<host>:<port>/hook)
# server:
#   host: 127.0.0.1
#   port: 9398

# Reconciliation timing, in seconds
# engine:
#   grace_window: 5        # how long a hook update shields a session from scans
#   scan_interval: 3       # tmux scan period (grace_window is kept >= this + 1)
#   missing_pane_grace: 5  # how long a pane may vanish before its session is dropped

# Tools whose PreToolUse means "waiting for permission"
# permission_tools: [Bash, Write, Edit]

# Notifications: off, sound, banner, or both
# notifications:
#   mode: both
#   sounds:
#     permission: Glass
#     input: Ping
#     complete: Hero
"""


@config_app.callback(invoke_without_command=True)
def config_default(ctx: typer.Context):
    """Show current configuration (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _config_show()


@config_app.command("init")
def config_init(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite existing config file")
    ] = False,
):
    """Create a config file with documented defaults.

    Creates ~/.c3/config.yaml with all options commented out.
    Use --force to overwrite an existing config file.
    """
    from .. import config

    path = config.CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.exists() and not force:
        rprint(f"[yellow]Config file already exists:[/yellow] {path}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    path.write_text(CONFIG_TEMPLATE)
    rprint(f"[green]✓[/green] Created config file: [bold]{path}[/bold]")
    rprint("[dim]Edit to customize your settings[/dim]")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    _config_show()


@config_app.command("path")
def config_path():
    """Print the config file location."""
    from .. import config

    print(config.CONFIG_PATH)


def _config_show():
    """Internal function to display current config."""
    from .. import config

    path = config.CONFIG_PATH
    if not path.exists():
        rprint(f"[dim]No config file found at {path}[/dim]")
        rprint("[dim]Run 'c3 config init' to create one[/dim]")
    else:
        rprint(f"[bold]Configuration[/bold] ({path}):\n")

    # Effective values, whether from the file or defaults
    loaded = config.load_config()
    settings = config.get_engine_settings(loaded)
    notifications = config.get_notification_config(loaded)

    rprint(f"  server:             {settings.host}:{settings.port}")
    rprint(f"  grace_window:       {settings.grace_window:g}s")
    rprint(f"  scan_interval:      {settings.scan_interval:g}s")
    rprint(f"  missing_pane_grace: {settings.missing_pane_grace:g}s")
    rprint(f"  permission_tools:   {', '.join(settings.permission_tools)}")
    rprint(f"  notifications:      {notifications['mode']}")
    for kind, sound in notifications["sounds"].items():
        rprint(f"    {kind:<11} {sound}")
