"""
Side-effect dispatcher: transitions in, attention triggers out.

Consumes the Registry's change stream and emits one AttentionTrigger per
qualifying transition (to awaiting_permission, awaiting_input, or
complete). Repeated `updated` deliveries for a state already acted on emit
nothing. Delivery (sound, banner) is left to the sinks.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .models import CHANGE_REMOVED, ChangeEvent, Session
from .registry import SessionRegistry, Subscription
from .status_constants import (
    STATE_AWAITING_INPUT,
    STATE_AWAITING_PERMISSION,
    STATE_COMPLETE,
)


TRIGGER_PERMISSION = "permission"
TRIGGER_INPUT = "input"
TRIGGER_COMPLETE = "complete"

TRIGGER_FOR_STATE = {
    STATE_AWAITING_PERMISSION: TRIGGER_PERMISSION,
    STATE_AWAITING_INPUT: TRIGGER_INPUT,
    STATE_COMPLETE: TRIGGER_COMPLETE,
}


@dataclass(frozen=True)
class AttentionTrigger:
    kind: str
    session_id: str
    project_name: str
    title: str
    body: str


def build_trigger(kind: str, session: Session) -> AttentionTrigger:
    """Notification text for a trigger kind."""
    project = session.project_name or session.id
    action = session.pending_action
    if kind == TRIGGER_PERMISSION:
        title = f"Permission Requested: {project}"
        body = f"{(action.tool if action else None) or 'Action'} requires approval"
    elif kind == TRIGGER_INPUT:
        title = f"Input Needed: {project}"
        body = action.description if action else "Awaiting your input"
    else:
        title = f"Task Complete: {project}"
        body = "Session has finished"
    return AttentionTrigger(
        kind=kind,
        session_id=session.id,
        project_name=project,
        title=title,
        body=body,
    )


class SideEffectDispatcher:
    """Turns transitions into at-most-once triggers.

    Keeps the last state it acted on per session, so a redelivered update
    or a no-op refresh never fires twice. Sink failures are reported to
    on_error and otherwise ignored.
    """

    def __init__(
        self,
        sinks: Optional[List[Callable[[AttentionTrigger], None]]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.sinks = list(sinks or [])
        self.on_error = on_error
        self._last_state: Dict[str, str] = {}
        self._subscription: Optional[Subscription] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def add_sink(self, sink: Callable[[AttentionTrigger], None]) -> None:
        self.sinks.append(sink)

    def handle(self, event: ChangeEvent) -> Optional[AttentionTrigger]:
        """Process one change event. Returns the trigger emitted, if any."""
        if event.kind == CHANGE_REMOVED:
            self._last_state.pop(event.session_id, None)
            return None

        session = event.session
        if session is None:
            return None

        seen = self._last_state.get(session.id, event.previous_state)
        self._last_state[session.id] = session.state
        if seen == session.state or not event.is_transition:
            return None

        kind = TRIGGER_FOR_STATE.get(session.state)
        if kind is None:
            return None

        trigger = build_trigger(kind, session)
        self._emit(trigger)
        return trigger

    def _emit(self, trigger: AttentionTrigger) -> None:
        for sink in self.sinks:
            try:
                sink(trigger)
            except Exception as e:
                if self.on_error:
                    self.on_error(f"Trigger sink failed for {trigger.session_id}: {e}")

    # ------------------------------------------------------------------
    # Background consumption
    # ------------------------------------------------------------------

    def start(self, registry: SessionRegistry) -> None:
        """Consume the registry's change stream on a background thread."""
        self._subscription = registry.subscribe()
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="c3-dispatcher", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            event = self._subscription.get(timeout=0.5)
            if event is not None:
                self.handle(event)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        if self._subscription is not None:
            for event in self._subscription.drain():
                self.handle(event)
            self._subscription.close()
            self._subscription = None
