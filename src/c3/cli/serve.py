"""
Server command: serve.
"""

from typing import Annotated, Optional

import typer
from rich import print as rprint

from ._shared import app


@app.command()
def serve(
    host: Annotated[
        Optional[str], typer.Option("--host", help="Host to bind to (default from config)")
    ] = None,
    port: Annotated[
        Optional[int], typer.Option("--port", "-p", help="Port to listen on (default from config)")
    ] = None,
    no_scan: Annotated[
        bool, typer.Option("--no-scan", help="Disable the tmux scanner (hooks only)")
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show debug lines on the console")
    ] = False,
):
    """Run the engine: hook endpoint, tmux scanner, notifications.

    Listens on 127.0.0.1:9398 unless config.yaml or the flags say otherwise.
    """
    from ..config import get_engine_settings, get_notification_config, load_config
    from ..daemon_logging import DaemonLogger
    from ..engine import Engine
    from ..notifier import Notifier
    from ..settings import ensure_c3_dir
    from ..web_server import run_server

    ensure_c3_dir()
    config = load_config()
    settings = get_engine_settings(config)
    notifications = get_notification_config(config)

    bind_host = host or settings.host
    bind_port = port or settings.port

    log = DaemonLogger(verbose=verbose)
    notifier = Notifier(mode=notifications["mode"], sounds=notifications["sounds"])
    engine = Engine(settings=settings, log=log, sinks=[notifier], scan=not no_scan)

    try:
        run_server(engine, host=bind_host, port=bind_port, log=log)
    except OSError as e:
        if "Address already in use" in str(e) or getattr(e, "errno", None) in (48, 98):
            rprint(f"[red]Error:[/red] Port {bind_port} is already in use")
            rprint("[dim]Is another 'c3 serve' running? Try --port[/dim]")
        else:
            rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
