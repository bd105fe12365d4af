"""
Hook command: hook-handler.
"""

from typing import Annotated, Optional

import typer

from ._shared import app


@app.command("hook-handler", hidden=True)
def hook_handler_cmd(
    kind: Annotated[
        Optional[str], typer.Argument(help="Hook event kind (e.g. PreToolUse)")
    ] = None,
):
    """Forward a Claude Code hook event to the server (internal).

    Called by Claude Code hooks, not by users directly. Reads event JSON
    from stdin and always exits 0.
    """
    from ..hook_handler import handle_hook_event

    try:
        handle_hook_event(kind)
    except Exception:
        # A hook must never fail the agent
        pass
