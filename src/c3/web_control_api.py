"""
Control action handlers for the HTTP API.

Thin dispatch layer: each function takes the engine plus parsed JSON body
fields, forwards the command to tmux or the metadata store, and returns a
result dict.

All functions return {"ok": True, ...} on success or raise ControlError on failure.
"""

from typing import Any, Optional

from .engine import Engine
from .models import Session


class ControlError(Exception):
    """Raised when a control action fails."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


def _get_session_or_error(engine: Engine, session_id: str) -> Session:
    """Look up a session by id, raise 404 if not found."""
    session = engine.find_session(session_id)
    if session is None:
        raise ControlError(f"Session '{session_id}' not found", status=404)
    return session


def _pane_or_error(session: Session) -> str:
    if not session.pane_target:
        raise ControlError(f"Session '{session.id}' has no tmux pane", status=409)
    return session.pane_target


# ---------------------------------------------------------------------------
# Pane commands
# ---------------------------------------------------------------------------


def focus_session(engine: Engine, session_id: str) -> dict:
    """Select the session's tmux window and pane."""
    session = _get_session_or_error(engine, session_id)
    target = _pane_or_error(session)
    if engine.tmux.focus_pane(target):
        return {"ok": True, "pane_target": target}
    raise ControlError(f"Failed to focus pane {target}", status=500)


def close_session(engine: Engine, session_id: str) -> dict:
    """Kill the session's pane and drop the session."""
    session = _get_session_or_error(engine, session_id)
    target = _pane_or_error(session)
    if not engine.tmux.kill_pane(target):
        raise ControlError(f"Failed to kill pane {target}", status=500)
    engine.registry.remove(session.id, reason="pane closed")
    return {"ok": True, "pane_target": target}


def send_input(engine: Engine, session_id: str, text: Any, enter: bool = True) -> dict:
    """Type text into the session's pane."""
    if not isinstance(text, str):
        raise ControlError("text must be a string")
    if not text and not enter:
        raise ControlError("Nothing to send")
    session = _get_session_or_error(engine, session_id)
    target = _pane_or_error(session)
    if engine.tmux.send_text(target, text, enter=bool(enter)):
        return {"ok": True}
    raise ControlError(f"Failed to send to pane {target}", status=500)


def dismiss_session(engine: Engine, session_id: str) -> dict:
    """Stop tracking a session without touching its pane."""
    if not engine.registry.remove(session_id, reason="dismissed"):
        raise ControlError(f"Session '{session_id}' not found", status=404)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def set_meta(
    engine: Engine,
    session_id: str,
    tag: Optional[Any] = None,
    pinned: Optional[Any] = None,
) -> dict:
    """Set tag and/or pin. Meta may be set for sessions not currently live."""
    if not session_id:
        raise ControlError("Session id required")
    if tag is not None and not isinstance(tag, str):
        raise ControlError("tag must be a string")
    if pinned is not None and not isinstance(pinned, bool):
        raise ControlError("pinned must be a boolean")
    if tag is None and pinned is None:
        raise ControlError("Provide tag and/or pinned")

    entry = engine.meta_store.set_meta(session_id, tag=tag, pinned=pinned)
    return {"ok": True, "meta": entry.to_dict()}


def get_meta(engine: Engine) -> dict:
    return {sid: m.to_dict() for sid, m in engine.meta_store.get_meta().items()}
