"""
Push event parsing: raw hook JSON to a normalized Candidate.

Event kind strings are resolved to HookKind exactly once, here. Everything
downstream matches on the enum, never on the raw hook name.

Payload shape (as posted by `c3 hook-handler`):
    {
      "hook_type": "PreToolUse",
      "cwd": "/Users/me/proj",
      "session_id": "8c1f...",
      "tool_name": "Bash",
      "tool_input": {"command": "npm install"},
      "skip_permissions": false,
      "tmux": {"session": "main", "window": "1", "pane": "0", "window_name": "proj"}
    }

`session_id` is Claude's own id and only a correlation hint. `c3_session_id`
(optional) names a c3 session outright, e.g. "tmux:main:1.0"; an event for
an id that is not tracked is rejected instead of falling back to cwd.
"""

from enum import Enum
from pathlib import PurePath
from typing import Any, Iterable, Optional

from .models import Candidate, PendingAction
from .status_constants import (
    SOURCE_PUSH,
    STATE_AWAITING_INPUT,
    STATE_AWAITING_PERMISSION,
    STATE_COMPLETE,
    STATE_PROCESSING,
)
from .settings import DEFAULT_PERMISSION_TOOLS


MAX_COMMAND_LENGTH = 100


class MalformedEvent(ValueError):
    """Raised when a push payload is missing required fields or unparseable."""


class HookKind(str, Enum):
    SESSION_START = "SessionStart"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    PERMISSION_REQUEST = "PermissionRequest"
    NOTIFICATION = "Notification"
    STOP = "Stop"
    SESSION_END = "SessionEnd"

    @classmethod
    def parse(cls, value: Any) -> "HookKind":
        try:
            return cls(value)
        except ValueError:
            raise MalformedEvent(f"unknown hook kind: {value!r}") from None

    @property
    def ends_turn(self) -> bool:
        """Kinds that finish a session and so can never originate one."""
        return self in (HookKind.STOP, HookKind.SESSION_END)


_KIND_STATES = {
    HookKind.SESSION_START: STATE_PROCESSING,
    HookKind.USER_PROMPT_SUBMIT: STATE_PROCESSING,
    HookKind.POST_TOOL_USE: STATE_PROCESSING,
    HookKind.PERMISSION_REQUEST: STATE_AWAITING_PERMISSION,
    HookKind.NOTIFICATION: STATE_AWAITING_INPUT,
    HookKind.STOP: STATE_COMPLETE,
    HookKind.SESSION_END: STATE_COMPLETE,
}


def truncate_command(command: Optional[str], limit: int = MAX_COMMAND_LENGTH) -> Optional[str]:
    """Shorten a command snippet for display, keeping a '...' marker."""
    if command is None:
        return None
    if len(command) > limit:
        return command[: limit - 3] + "..."
    return command


def extract_command(tool_input: Any) -> Optional[str]:
    """Pick the display snippet out of a tool_input payload."""
    if not isinstance(tool_input, dict):
        return None
    for key in ("command", "file_path", "path", "url", "pattern"):
        value = tool_input.get(key)
        if isinstance(value, str) and value:
            return truncate_command(value)
    return None


def target_state(
    kind: HookKind,
    tool_name: Optional[str],
    auto_approved: bool,
    permission_tools: Iterable[str] = DEFAULT_PERMISSION_TOOLS,
) -> str:
    """Map a hook kind to the state it proposes.

    PreToolUse only asks for attention for tools that normally prompt;
    everything else the agent runs unattended.
    """
    if kind is HookKind.PRE_TOOL_USE:
        if tool_name in set(permission_tools) and not auto_approved:
            return STATE_AWAITING_PERMISSION
        return STATE_PROCESSING
    return _KIND_STATES[kind]


def build_pending_action(
    state: str,
    tool_name: Optional[str],
    command: Optional[str],
    message: Optional[str] = None,
) -> Optional[PendingAction]:
    """Pending action for an awaiting state, None otherwise."""
    if state == STATE_AWAITING_PERMISSION:
        return PendingAction.permission(tool_name, command)
    if state == STATE_AWAITING_INPUT:
        if message:
            return PendingAction.input(message)
        return PendingAction.input()
    return None


def pane_target_from(tmux: Any) -> Optional[str]:
    """Build session:window.pane from the hook's tmux block."""
    if not isinstance(tmux, dict):
        return None
    session = tmux.get("session")
    window = tmux.get("window")
    pane = tmux.get("pane")
    if not session or window in (None, "") or pane in (None, ""):
        return None
    return f"{session}:{window}.{pane}"


def project_name_for(cwd: str) -> str:
    """Display name for a working directory."""
    name = PurePath(cwd).name
    return name or cwd or "unknown"


def _optional_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedEvent(f"field {key!r} must be a string")
    return value or None


def parse_hook_payload(
    data: Any,
    permission_tools: Iterable[str] = DEFAULT_PERMISSION_TOOLS,
) -> Candidate:
    """Normalize a decoded push payload into a Candidate.

    Raises:
        MalformedEvent: payload is not an object, has no kind or cwd,
            names an unknown kind, or carries wrongly typed fields.
    """
    if not isinstance(data, dict):
        raise MalformedEvent("payload must be a JSON object")

    raw_kind = data.get("hook_type") or data.get("hook_event_name")
    if not raw_kind:
        raise MalformedEvent("missing hook_type")
    kind = HookKind.parse(raw_kind)

    cwd = data.get("cwd")
    if not isinstance(cwd, str) or not cwd:
        raise MalformedEvent("missing cwd")

    session_hint = _optional_str(data, "session_id")
    explicit_id = _optional_str(data, "c3_session_id")
    tool_name = _optional_str(data, "tool_name")
    command = extract_command(data.get("tool_input"))
    message = data.get("message") if isinstance(data.get("message"), str) else None
    auto_approved = data.get("skip_permissions", False)
    if auto_approved is None:
        auto_approved = False
    if not isinstance(auto_approved, bool):
        raise MalformedEvent("field 'skip_permissions' must be a boolean")

    tmux = data.get("tmux")
    pane_target = pane_target_from(tmux)

    state = target_state(kind, tool_name, auto_approved, permission_tools)

    return Candidate(
        source=SOURCE_PUSH,
        kind=kind,
        state=state,
        cwd=cwd.rstrip("/") or cwd,
        project_name=project_name_for(cwd),
        pane_target=pane_target,
        session_hint=session_hint,
        session_id=explicit_id,
        tool_name=tool_name,
        pending_action=build_pending_action(state, tool_name, command, message),
        auto_approved=auto_approved,
    )
