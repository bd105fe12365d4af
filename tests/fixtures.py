"""
Test fixtures and factories for c3 unit tests.

Factories build hook payloads, candidates, and sessions with sensible
defaults so each test only spells out what it cares about.
"""

from typing import Optional

from c3.hook_events import parse_hook_payload
from c3.models import Candidate, HookRecord, PendingAction, Session
from c3.status_constants import SOURCE_SCAN, STATE_PROCESSING


class FakeClock:
    """Manually advanced clock; call it to read the time."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_payload(
    kind: str = "UserPromptSubmit",
    cwd: str = "/home/dev/proj",
    session_id: Optional[str] = None,
    tool_name: Optional[str] = None,
    tool_input: Optional[dict] = None,
    skip_permissions: bool = False,
    tmux: Optional[dict] = None,
    **extra,
) -> dict:
    """A /hook payload as posted by `c3 hook-handler`."""
    payload = {
        "hook_type": kind,
        "cwd": cwd,
        "session_id": session_id,
        "tool_name": tool_name,
        "tool_input": tool_input,
        "skip_permissions": skip_permissions,
    }
    if tmux is not None:
        payload["tmux"] = tmux
    payload.update(extra)
    return payload


def tmux_block(target: str = "main:1.0", window_name: str = "proj") -> dict:
    """tmux block for a session:window.pane target."""
    session, rest = target.split(":", 1)
    window, pane = rest.split(".", 1)
    return {"session": session, "window": window, "pane": pane, "window_name": window_name}


def push_candidate(kind: str = "UserPromptSubmit", **kwargs) -> Candidate:
    """Parsed push candidate, built through the real payload parser."""
    return parse_hook_payload(make_payload(kind, **kwargs))


def scan_candidate(
    state: str = STATE_PROCESSING,
    pane_target: str = "main:1.0",
    cwd: str = "/home/dev/proj",
    pending_action: Optional[PendingAction] = None,
    project_name: str = "proj",
) -> Candidate:
    """Scan candidate as the scanner produces it."""
    return Candidate(
        source=SOURCE_SCAN,
        kind="scan",
        state=state,
        cwd=cwd,
        project_name=project_name,
        pane_target=pane_target,
        tool_name=pending_action.tool if pending_action else None,
        pending_action=pending_action,
    )


def make_session(
    id: str = "tmux:main:1.0",
    state: str = STATE_PROCESSING,
    project_path: str = "/home/dev/proj",
    pane_target: Optional[str] = "main:1.0",
    last_activity: float = 0.0,
    agent_session_id: Optional[str] = None,
    pending_action: Optional[PendingAction] = None,
    project_name: Optional[str] = None,
) -> Session:
    return Session(
        id=id,
        project_name=project_name or project_path.rsplit("/", 1)[-1],
        project_path=project_path,
        state=state,
        pane_target=pane_target,
        last_activity=last_activity,
        pending_action=pending_action,
        agent_session_id=agent_session_id,
    )


def make_record(session_id: str, pushed_at: float, stopped_at: Optional[float] = None) -> HookRecord:
    return HookRecord(session_id=session_id, pushed_at=pushed_at, stopped_at=stopped_at)
