"""Hook client for Claude Code hook events.

A single command (`c3 hook-handler <KIND>`) handles every hook event. It
reads the hook JSON Claude Code writes to stdin, adds the tmux pane it is
running in, and POSTs the result to the c3 server.

It must never block or fail the agent: every error path exits 0 silently
and the POST has a short timeout.

Hook registrations (one per kind):
    SessionStart      -> c3 hook-handler SessionStart
    UserPromptSubmit  -> c3 hook-handler UserPromptSubmit
    PreToolUse        -> c3 hook-handler PreToolUse
    ...
"""

import json
import os
import subprocess
import sys
from typing import Optional
from urllib.request import Request, urlopen

from .settings import get_hook_url


POST_TIMEOUT = 2.0
TMUX_TIMEOUT = 1.0

_TMUX_FORMAT = "#{session_name}\t#{window_index}\t#{pane_index}\t#{window_name}"


def get_tmux_context(pane_id: Optional[str] = None) -> Optional[dict]:
    """Resolve $TMUX_PANE to {session, window, pane, window_name}.

    Returns None outside tmux or when tmux can't be queried.
    """
    pane_id = pane_id or os.environ.get("TMUX_PANE")
    if not pane_id:
        return None
    try:
        result = subprocess.run(
            ["tmux", "display-message", "-p", "-t", pane_id, _TMUX_FORMAT],
            capture_output=True,
            text=True,
            timeout=TMUX_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    parts = result.stdout.strip().split("\t")
    if len(parts) < 3:
        return None
    return {
        "session": parts[0],
        "window": parts[1],
        "pane": parts[2],
        "window_name": parts[3] if len(parts) > 3 else "",
    }


def skip_permissions_enabled(data: dict) -> bool:
    """Whether the agent runs without permission prompts."""
    if data.get("permission_mode") == "bypassPermissions":
        return True
    return os.environ.get("CLAUDE_SKIP_PERMISSIONS", "").lower() in ("1", "true", "yes")


def build_payload(kind: str, data: dict, tmux: Optional[dict] = None) -> dict:
    """Shape the hook JSON into the server's /hook payload."""
    payload = {
        "hook_type": kind,
        "cwd": data.get("cwd") or os.getcwd(),
        "session_id": data.get("session_id"),
        "tool_name": data.get("tool_name") or data.get("tool"),
        "tool_input": data.get("tool_input") or data.get("input"),
        "skip_permissions": skip_permissions_enabled(data),
    }
    if isinstance(data.get("message"), str):
        payload["message"] = data["message"]
    # Set by whoever launched the agent into a known c3 session
    c3_session_id = os.environ.get("C3_SESSION_ID")
    if c3_session_id:
        payload["c3_session_id"] = c3_session_id
    if tmux:
        payload["tmux"] = tmux
    return payload


def post_event(payload: dict, url: Optional[str] = None, timeout: float = POST_TIMEOUT) -> bool:
    """POST a payload to the server. Returns False on any failure."""
    try:
        req = Request(
            url or get_hook_url(),
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
        )
        req.add_header("Content-Type", "application/json")
        with urlopen(req, timeout=timeout) as resp:
            return 200 <= resp.status < 300
    except (OSError, ValueError):
        # URLError and socket timeouts are OSErrors; ValueError is a bad URL
        return False


def handle_hook_event(kind: Optional[str] = None) -> None:
    """Main entry point: read stdin JSON and forward it to the server.

    kind comes from the command line; when absent the hook's own
    hook_event_name is used. Silent return if stdin is empty or invalid.
    """
    try:
        stdin_data = sys.stdin.read()
        if not stdin_data.strip():
            return
        data = json.loads(stdin_data)
    except (json.JSONDecodeError, OSError):
        return
    if not isinstance(data, dict):
        return

    kind = kind or data.get("hook_event_name")
    if not kind:
        return

    post_event(build_payload(kind, data, get_tmux_context()))
