"""
Session Registry - the authoritative session map.

Single writer discipline: every mutation goes through upsert() or
remove(), which hold one lock across decide/apply/record so a candidate's
whole accept/reject sequence is atomic. Readers get copies taken under the
same lock and never see a half-applied update.

Subscribers receive ChangeEvents on their own queue. Delivery is
at-least-once; consumers must tolerate repeated `updated` events for an
unchanged state.
"""

import queue
import threading
import time
from typing import Callable, Dict, List, Optional

from .daemon_logging import DaemonLogger
from .debug_feed import DebugFeed
from .hook_events import HookKind
from .models import (
    CHANGE_REMOVED,
    CHANGE_UPDATED,
    OUTCOME_APPLIED_NO_CHANGE,
    OUTCOME_REMOVED,
    ChangeEvent,
    Candidate,
    Decision,
    HookRecord,
    IngressEvent,
    Session,
)
from .reconciler import collect_expired_records, reconcile
from .status_constants import SOURCE_PUSH, SOURCE_SCAN


class Subscription:
    """A subscriber's view of the change stream."""

    def __init__(self, registry: "SessionRegistry"):
        self._registry = registry
        self._queue: "queue.Queue[ChangeEvent]" = queue.Queue()
        self.closed = False

    def put(self, event: ChangeEvent) -> None:
        if not self.closed:
            self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None if none arrived within timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[ChangeEvent]:
        """All events queued so far, without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        self._registry.unsubscribe(self)
        self.closed = True


class SessionRegistry:
    """Authoritative id -> Session mapping with grace bookkeeping."""

    def __init__(
        self,
        grace_window: float = 5.0,
        clock: Callable[[], float] = time.time,
        debug_feed: Optional[DebugFeed] = None,
        log: Optional[DaemonLogger] = None,
    ):
        self.grace_window = grace_window
        self._clock = clock
        self.debug_feed = debug_feed or DebugFeed()
        self.log = log
        self._sessions: Dict[str, Session] = {}
        self._hook_records: Dict[str, HookRecord] = {}
        self._subscribers: List[Subscription] = []
        self.quiet_scans = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def upsert(self, candidate: Candidate) -> Decision:
        """Submit a candidate; returns the decision that was applied."""
        with self._lock:
            now = self._clock()
            decision = reconcile(
                candidate, self._sessions, self._hook_records, now, self.grace_window
            )
            events = self._apply(candidate, decision, now)
            self._record(candidate, decision, now)
            self._gc_hook_records(now)
            self._publish(events)
        self._log_decision(candidate, decision)
        return decision

    def remove(self, session_id: str, reason: str = "removed") -> bool:
        """Remove a session and its grace record. Returns False if unknown."""
        with self._lock:
            now = self._clock()
            session = self._sessions.pop(session_id, None)
            self._hook_records.pop(session_id, None)
            if session is None:
                return False
            self.debug_feed.record(IngressEvent(
                timestamp=now,
                source="command",
                kind="remove",
                cwd=session.project_path,
                matched_session=session_id,
                state=session.state,
                accepted=True,
                outcome=OUTCOME_REMOVED,
                reason=reason,
            ))
            self._publish([ChangeEvent(kind=CHANGE_REMOVED, session_id=session_id)])
        return True

    def record_rejection(self, source: str, kind: str, outcome: str, reason: str, cwd: str = "") -> None:
        """Record an ingress event that never became a candidate."""
        self.debug_feed.record(IngressEvent(
            timestamp=self._clock(),
            source=source,
            kind=kind,
            cwd=cwd,
            accepted=False,
            outcome=outcome,
            reason=reason,
        ))

    def _apply(self, candidate: Candidate, decision: Decision, now: float) -> List[ChangeEvent]:
        """Apply an accepted decision. Caller holds the lock."""
        if not decision.accepted:
            return []

        sid = decision.session_id
        if decision.outcome == OUTCOME_REMOVED:
            self._sessions.pop(sid, None)
            self._hook_records.pop(sid, None)
            return [ChangeEvent(kind=CHANGE_REMOVED, session_id=sid)]

        session = decision.session
        self._sessions[sid] = session

        if candidate.source == SOURCE_PUSH:
            record = self._hook_records.get(sid)
            if record is None:
                record = HookRecord(session_id=sid, pushed_at=now)
                self._hook_records[sid] = record
            else:
                record.pushed_at = now
            if isinstance(candidate.kind, HookKind) and candidate.kind.ends_turn:
                record.stopped_at = now
        elif candidate.source == SOURCE_SCAN:
            # Scan only applies once the grace window is over, so this
            # confirmation supersedes the push record.
            self._hook_records.pop(sid, None)

        return [ChangeEvent(
            kind=CHANGE_UPDATED,
            session_id=sid,
            session=session.copy(),
            previous_state=decision.previous_state,
        )]

    def _record(self, candidate: Candidate, decision: Decision, now: float) -> None:
        # Unchanged scan confirmations arrive every tick for every pane and
        # would push the hook events out of the trail; only count them.
        if candidate.source == SOURCE_SCAN and decision.outcome == OUTCOME_APPLIED_NO_CHANGE:
            self.quiet_scans += 1
            return
        kind = candidate.kind.value if isinstance(candidate.kind, HookKind) else candidate.kind
        state = decision.session.state if decision.session else candidate.state
        self.debug_feed.record(IngressEvent(
            timestamp=now,
            source=candidate.source,
            kind=kind,
            cwd=candidate.cwd,
            tool_name=candidate.tool_name,
            matched_session=decision.session_id,
            state=state,
            accepted=decision.accepted,
            outcome=decision.outcome,
            reason=decision.reason,
        ))

    def _log_decision(self, candidate: Candidate, decision: Decision) -> None:
        if self.log is None:
            return
        if decision.is_transition:
            session = decision.session
            self.log.transition(
                session.id, session.project_name, decision.previous_state, session.state
            )
        elif decision.outcome == OUTCOME_REMOVED:
            self.log.info(f"Removed {decision.session_id}: {decision.reason}")
        elif not decision.accepted:
            self.log.debug(
                f"{candidate.source} {decision.outcome} "
                f"{decision.session_id or candidate.cwd}: {decision.reason}"
            )

    def _gc_hook_records(self, now: float) -> None:
        expired = collect_expired_records(
            self._hook_records, self._sessions, now, self.grace_window
        )
        for sid in expired:
            del self._hook_records[sid]

    # ------------------------------------------------------------------
    # Change stream
    # ------------------------------------------------------------------

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def _publish(self, events: List[ChangeEvent]) -> None:
        for event in events:
            for subscription in list(self._subscribers):
                subscription.put(event)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.copy() if session else None

    def list(self) -> List[Session]:
        """Snapshot of all sessions. Order is not meaningful."""
        with self._lock:
            return [s.copy() for s in self._sessions.values()]

    def hook_records(self) -> List[dict]:
        """Live grace table as plain dicts."""
        with self._lock:
            now = self._clock()
            return [
                record.to_dict(now, self.grace_window)
                for record in self._hook_records.values()
            ]

    def debug_info(self) -> dict:
        """Debug trail, grace table, and session list in one snapshot."""
        with self._lock:
            return {
                "events": [e.to_dict() for e in self.debug_feed.entries()],
                "hook_timestamps": self.hook_records(),
                "sessions": [s.to_dict() for s in self._sessions.values()],
                "grace_window": self.grace_window,
                "quiet_scans": self.quiet_scans,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
