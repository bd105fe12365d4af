"""
Session commands: status, debug, focus, close, send, tag, pin, dismiss.

All of these talk to a running `c3 serve` over HTTP.
"""

import json
from typing import Annotated, List

import typer
from rich import print as rprint
from rich.table import Table

from ._shared import app, check_result, console, get_client, ServerOption


def _state_cell(state: str) -> str:
    from ..status_constants import get_state_color, get_state_emoji

    color = get_state_color(state)
    return f"{get_state_emoji(state)} [{color}]{state}[/{color}]"


def _pending_cell(row: dict) -> str:
    pending = row.get("pending_action")
    if not pending:
        return ""
    text = pending.get("description") or ""
    if pending.get("command"):
        text += f" [dim]{pending['command']}[/dim]"
    return text


@app.command()
def status(
    server: ServerOption = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the raw snapshot as JSON")
    ] = False,
):
    """Show tracked sessions (pinned first, then most recent)."""
    from ..web_api import sessions_list

    result = get_client(server).sessions()
    check_result(result)
    rows = sessions_list(result)

    if as_json:
        print(json.dumps(rows, indent=2))
        return

    if not rows:
        rprint("[dim]No sessions tracked[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("", width=1)
    table.add_column("Project")
    table.add_column("State")
    table.add_column("Pane", style="cyan")
    table.add_column("Age", justify="right")
    table.add_column("Tag", style="magenta")
    table.add_column("Pending")
    table.add_column("ID", style="dim")

    for row in rows:
        table.add_row(
            "📌" if row.get("pinned") else "",
            row.get("project_name", ""),
            _state_cell(row.get("state", "")),
            row.get("pane_target") or "-",
            row.get("age", ""),
            row.get("tag") or "",
            _pending_cell(row),
            row.get("id", ""),
        )
    console.print(table)


@app.command()
def debug(
    server: ServerOption = None,
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Number of ingress events to show")
    ] = 20,
):
    """Show recent ingress decisions and the grace table."""
    data = check_result(get_client(server).debug())

    rprint(
        f"[bold]Grace window:[/bold] {data.get('grace_window')}s  "
        f"[bold]Scan ticks:[/bold] {data.get('scan_ticks', 0)} "
        f"({data.get('quiet_scans', 0)} unchanged)  "
        f"[bold]Queued pushes:[/bold] {data.get('queued_pushes', 0)}"
    )

    records = data.get("hook_timestamps", [])
    if records:
        rprint("\n[bold]Hook timestamps[/bold]")
        for record in records:
            mark = "[green]protected[/green]" if record.get("protected") else "[dim]expired[/dim]"
            rprint(f"  {record['session_id']:<32} {record['age_secs']:>6.1f}s  {mark}")

    events = data.get("events", [])[:limit]
    if not events:
        rprint("\n[dim]No ingress events recorded[/dim]")
        return

    table = Table(title="Ingress events (newest first)", box=None, header_style="bold")
    table.add_column("Source")
    table.add_column("Kind")
    table.add_column("Outcome")
    table.add_column("Session", style="dim")
    table.add_column("State")
    table.add_column("Reason", style="dim")
    for event in events:
        outcome = event.get("outcome", "")
        style = "green" if event.get("accepted") else "yellow"
        table.add_row(
            event.get("source", ""),
            event.get("kind", ""),
            f"[{style}]{outcome}[/{style}]",
            event.get("matched_session") or "",
            event.get("state") or "",
            event.get("reason") or "",
        )
    console.print(table)


@app.command()
def focus(
    session_id: Annotated[str, typer.Argument(help="Session id (see 'c3 status')")],
    server: ServerOption = None,
):
    """Switch tmux to the session's pane."""
    data = check_result(get_client(server).focus(session_id))
    rprint(f"[green]✓[/green] Focused {data.get('pane_target', session_id)}")


@app.command()
def close(
    session_id: Annotated[str, typer.Argument(help="Session id (see 'c3 status')")],
    server: ServerOption = None,
):
    """Kill the session's tmux pane and stop tracking it."""
    data = check_result(get_client(server).close(session_id))
    rprint(f"[green]✓[/green] Closed {data.get('pane_target', session_id)}")


@app.command()
def send(
    session_id: Annotated[str, typer.Argument(help="Session id (see 'c3 status')")],
    text: Annotated[List[str], typer.Argument(help="Text to type into the pane")],
    no_enter: Annotated[
        bool, typer.Option("--no-enter", help="Don't press Enter after the text")
    ] = False,
    server: ServerOption = None,
):
    """Type text into the session's pane."""
    message = " ".join(text)
    check_result(get_client(server).send_input(session_id, message, enter=not no_enter))
    rprint(f"[green]✓[/green] Sent to {session_id}")


@app.command()
def tag(
    session_id: Annotated[str, typer.Argument(help="Session id (see 'c3 status')")],
    text: Annotated[str, typer.Argument(help="Tag text (empty string clears)")],
    server: ServerOption = None,
):
    """Set or clear a session's tag."""
    check_result(get_client(server).set_meta(session_id, tag=text))
    if text.strip():
        rprint(f"[green]✓[/green] Tagged {session_id}: [magenta]{text.strip()}[/magenta]")
    else:
        rprint(f"[green]✓[/green] Cleared tag on {session_id}")


@app.command()
def pin(
    session_id: Annotated[str, typer.Argument(help="Session id (see 'c3 status')")],
    off: Annotated[bool, typer.Option("--off", help="Unpin instead")] = False,
    server: ServerOption = None,
):
    """Pin a session to the top of the list."""
    check_result(get_client(server).set_meta(session_id, pinned=not off))
    rprint(f"[green]✓[/green] {'Unpinned' if off else 'Pinned'} {session_id}")


@app.command()
def dismiss(
    session_id: Annotated[str, typer.Argument(help="Session id (see 'c3 status')")],
    server: ServerOption = None,
):
    """Stop tracking a session without touching its pane."""
    check_result(get_client(server).dismiss(session_id))
    rprint(f"[green]✓[/green] Dismissed {session_id}")
