"""
Reconciler - decides whether and how a candidate update applies.

Pure functions only: given a candidate, the current session map, the hook
grace records, and the current time, reconcile() returns a Decision. The
SessionRegistry applies it under its lock. Nothing here mutates its
arguments, so every rule is testable with plain dicts and a fixed clock.

Rules, in order of precedence:
- removal candidates always apply to a known session, protected or not
- auto-approved permission events and notifications trailing a Stop are skipped
- a scan candidate for a session inside its push grace window is rejected
- the state change must be a legal transition, possibly via processing
"""

import uuid
from dataclasses import replace
from typing import Iterable, List, Mapping, Optional, Tuple

from .hook_events import HookKind, build_pending_action
from .models import (
    Candidate,
    Decision,
    HookRecord,
    Session,
    OUTCOME_APPLIED,
    OUTCOME_APPLIED_NO_CHANGE,
    OUTCOME_CREATED,
    OUTCOME_REMOVED,
    OUTCOME_SKIPPED,
    OUTCOME_REJECTED_ILLEGAL,
    OUTCOME_REJECTED_MALFORMED,
    OUTCOME_REJECTED_PROTECTED,
    OUTCOME_REJECTED_STALE,
    OUTCOME_REJECTED_UNKNOWN_SESSION,
)
from .status_constants import (
    ALL_STATES,
    STATE_AWAITING_INPUT,
    STATE_AWAITING_PERMISSION,
    STATE_COMPLETE,
    STATE_ERROR,
    STATE_PROCESSING,
    STATE_SPAWNING,
    is_awaiting,
)


# =============================================================================
# State Machine
# =============================================================================

LEGAL_TRANSITIONS = {
    STATE_SPAWNING: {STATE_PROCESSING, STATE_ERROR},
    STATE_PROCESSING: {
        STATE_AWAITING_INPUT,
        STATE_AWAITING_PERMISSION,
        STATE_COMPLETE,
        STATE_ERROR,
    },
    STATE_AWAITING_INPUT: {STATE_PROCESSING, STATE_COMPLETE, STATE_ERROR},
    STATE_AWAITING_PERMISSION: {STATE_PROCESSING, STATE_COMPLETE, STATE_ERROR},
    STATE_COMPLETE: {STATE_PROCESSING, STATE_ERROR},
    STATE_ERROR: {STATE_PROCESSING},
}


def is_legal_transition(old: str, new: str) -> bool:
    """Check a single edge of the state machine. Self-transitions are legal."""
    if old == new:
        return True
    return new in LEGAL_TRANSITIONS.get(old, set())


def check_transition(old: str, new: str) -> Tuple[Optional[str], str]:
    """Classify old -> new.

    Returns (rejection_outcome, note). rejection_outcome is None when the
    change may be applied; note says whether it needed a processing bridge.

    A change with no direct edge is allowed when it is the composition of
    old -> processing -> new, since the agent must have been working in
    between. A finished session never reopens straight into awaiting_input:
    that is a trailing notification from the turn that just ended.
    """
    if is_legal_transition(old, new):
        return None, ""
    if old == STATE_COMPLETE and new == STATE_AWAITING_INPUT:
        return OUTCOME_REJECTED_STALE, "complete session ignores trailing input request"
    if old == STATE_ERROR:
        return OUTCOME_REJECTED_ILLEGAL, f"error only clears on processing, not {new}"
    if is_legal_transition(old, STATE_PROCESSING) and is_legal_transition(STATE_PROCESSING, new):
        return None, "via processing"
    return OUTCOME_REJECTED_ILLEGAL, f"no transition {old} -> {new}"


# =============================================================================
# Correlation
# =============================================================================

def _is_related_path(a: str, b: str) -> bool:
    """True when one path is the other or an ancestor of it."""
    if not a or not b:
        return False
    a = a.rstrip("/") or "/"
    b = b.rstrip("/") or "/"
    if a == b:
        return True
    return b.startswith(a.rstrip("/") + "/") or a.startswith(b.rstrip("/") + "/")


def _pick(matches: List[Session], candidate: Candidate, level: str) -> Tuple[Session, str]:
    """Choose among sessions that matched at the same correlation level.

    Several panes in one project make cwd matching ambiguous. Prefer the
    session that already knows the agent's own session id, then the one
    that was active most recently, and say so in the reason.
    """
    if len(matches) == 1:
        return matches[0], f"matched by {level}"

    hint = candidate.session_hint
    if hint:
        for session in matches:
            if session.agent_session_id == hint:
                return session, f"matched by {level}, ambiguous({len(matches)}), agent id"

    best = max(matches, key=lambda s: s.last_activity)
    return best, f"matched by {level}, ambiguous({len(matches)}), most recent"


def _matches_hint(session: Session, hint: str) -> bool:
    return session.agent_session_id == hint or session.id in (hint, f"hook:{hint}")


def _compatible_agent(session: Session, hint: Optional[str]) -> bool:
    """A session bound to a different agent id is not a cwd match."""
    if not hint or not session.agent_session_id:
        return True
    return session.agent_session_id == hint


def _compatible_pane(session: Session, pane_target: Optional[str]) -> bool:
    """A session bound to a different pane is not a cwd match."""
    if not pane_target or not session.pane_target:
        return True
    return session.pane_target == pane_target


def correlate_push(
    candidate: Candidate, sessions: Mapping[str, Session]
) -> Tuple[Optional[Session], str]:
    """Find the session a push event belongs to.

    Order: pane target, explicit session id, exact cwd, related cwd
    (ancestor or descendant, deepest path first). An explicit id that is
    not tracked matches nothing; it never falls back to cwd.
    """
    values = list(sessions.values())

    if candidate.pane_target:
        matches = [s for s in values if s.pane_target == candidate.pane_target]
        if matches:
            return _pick(matches, candidate, "pane")

    if candidate.session_id:
        session = sessions.get(candidate.session_id)
        if session is not None:
            return session, "matched by id"
        return None, "explicit session id not found"

    hint = candidate.session_hint
    if hint:
        matches = [s for s in values if _matches_hint(s, hint)]
        if matches:
            return _pick(matches, candidate, "session id")

    cwd = candidate.cwd
    if cwd:
        values = [
            s for s in values
            if _compatible_agent(s, hint) and _compatible_pane(s, candidate.pane_target)
        ]
        exact = [s for s in values if s.project_path == cwd]
        if exact:
            return _pick(exact, candidate, "cwd")

        related = [s for s in values if _is_related_path(s.project_path, cwd)]
        if related:
            deepest = max(len(s.project_path) for s in related)
            related = [s for s in related if len(s.project_path) == deepest]
            return _pick(related, candidate, "cwd prefix")

    return None, "no match"


def correlate_scan(
    candidate: Candidate, sessions: Mapping[str, Session]
) -> Tuple[Optional[Session], str]:
    """Find the session a scanned pane belongs to.

    A pane matches its own session, or adopts a push-born session that has
    no pane yet and shares the pane's working directory.
    """
    values = list(sessions.values())

    if candidate.session_id and candidate.session_id in sessions:
        return sessions[candidate.session_id], "matched by id"

    if candidate.pane_target:
        matches = [s for s in values if s.pane_target == candidate.pane_target]
        if matches:
            return _pick(matches, candidate, "pane")

    if candidate.cwd:
        orphans = [
            s for s in values
            if not s.pane_target and s.project_path == candidate.cwd
        ]
        if orphans:
            session, reason = _pick(orphans, candidate, "cwd")
            return session, reason + ", adopted pane"

    return None, "no match"


def new_session_id(candidate: Candidate, taken: Iterable[str] = ()) -> str:
    """Stable id for a newly observed session.

    Ids in taken belong to tracked sessions and are never handed out
    again; a clash gets a numeric suffix.
    """
    if candidate.pane_target:
        base = f"tmux:{candidate.pane_target}"
    elif candidate.session_hint:
        base = f"hook:{candidate.session_hint}"
    else:
        return f"hook:{uuid.uuid4()}"

    taken = set(taken)
    sid = base
    n = 2
    while sid in taken:
        sid = f"{base}#{n}"
        n += 1
    return sid


# =============================================================================
# Applying a Candidate
# =============================================================================

def pending_action_for(state: str, candidate: Candidate):
    """Pending action to store with state, keeping the awaiting invariant."""
    if not is_awaiting(state):
        return None
    action = candidate.pending_action
    if action is not None:
        wanted = "permission" if state == STATE_AWAITING_PERMISSION else "input"
        if action.type == wanted:
            return action
    return build_pending_action(state, candidate.tool_name, None)


def merge_candidate(session: Session, candidate: Candidate, new_state: str, now: float) -> Session:
    """Copy of session with candidate applied.

    last_activity never moves backwards. Descriptive fields are refined,
    never blanked: scans know the pane title and current path, pushes only
    fill what is missing.
    """
    project_name = session.project_name
    project_path = session.project_path
    if candidate.project_name and (candidate.is_scan or not project_name):
        project_name = candidate.project_name
    if candidate.cwd and (candidate.is_scan or not project_path):
        project_path = candidate.cwd

    return replace(
        session,
        state=new_state,
        project_name=project_name,
        project_path=project_path,
        pane_target=candidate.pane_target or session.pane_target,
        last_activity=max(session.last_activity, now),
        pending_action=pending_action_for(new_state, candidate),
        agent_session_id=candidate.session_hint or session.agent_session_id,
        last_message_at=candidate.last_message_at or session.last_message_at,
        source=candidate.source,
    )


def _removal(
    candidate: Candidate,
    sessions: Mapping[str, Session],
    hook_records: Mapping[str, HookRecord],
    now: float,
    grace_window: float,
) -> Decision:
    session = sessions.get(candidate.session_id) if candidate.session_id else None
    if session is None and candidate.pane_target:
        session, _ = correlate_scan(
            replace(candidate, session_id=None, cwd=""), sessions
        )
    if session is None:
        return Decision(
            outcome=OUTCOME_REJECTED_UNKNOWN_SESSION,
            session_id=candidate.session_id,
            reason="removal for unknown session",
        )

    record = hook_records.get(session.id)
    reason = "pane vanished"
    if record is not None and record.is_protected(now, grace_window):
        reason += " (overrides grace window)"
    return Decision(
        outcome=OUTCOME_REMOVED,
        session_id=session.id,
        previous_state=session.state,
        reason=reason,
    )


def _skip_reason(
    candidate: Candidate,
    record: Optional[HookRecord],
    now: float,
    grace_window: float,
) -> Optional[str]:
    """Why a push event should be dropped without touching state."""
    kind = candidate.kind
    if candidate.auto_approved and kind == HookKind.PERMISSION_REQUEST:
        return "auto-approved permission request"
    if kind == HookKind.NOTIFICATION and record is not None:
        if record.stopped_within(now, grace_window):
            return "notification right after stop"
    return None


def reconcile(
    candidate: Candidate,
    sessions: Mapping[str, Session],
    hook_records: Mapping[str, HookRecord],
    now: float,
    grace_window: float,
) -> Decision:
    """Decide what a candidate does to the session map.

    Pure function - no side effects, fully testable.
    """
    if candidate.remove:
        return _removal(candidate, sessions, hook_records, now, grace_window)

    if candidate.state not in ALL_STATES:
        return Decision(
            outcome=OUTCOME_REJECTED_MALFORMED,
            reason=f"unknown state {candidate.state!r}",
        )
    if not (candidate.cwd or candidate.pane_target or candidate.session_hint or candidate.session_id):
        return Decision(
            outcome=OUTCOME_REJECTED_MALFORMED,
            reason="no correlation data",
        )

    if candidate.is_push:
        session, match_reason = correlate_push(candidate, sessions)
    else:
        session, match_reason = correlate_scan(candidate, sessions)

    record = hook_records.get(session.id) if session is not None else None

    if candidate.is_push:
        skip = _skip_reason(candidate, record, now, grace_window)
        if skip:
            return Decision(
                outcome=OUTCOME_SKIPPED,
                session_id=session.id if session else None,
                reason=skip,
            )

    if session is None:
        return _originate(candidate, sessions, now)

    if candidate.is_scan and record is not None and record.is_protected(now, grace_window):
        return Decision(
            outcome=OUTCOME_REJECTED_PROTECTED,
            session_id=session.id,
            previous_state=session.state,
            reason=f"push {record.age(now):.1f}s ago, grace {grace_window:g}s",
        )

    new_state = candidate.state
    rejection, note = check_transition(session.state, new_state)
    if rejection is not None:
        return Decision(
            outcome=rejection,
            session_id=session.id,
            previous_state=session.state,
            reason=note,
        )

    updated = merge_candidate(session, candidate, new_state, now)
    outcome = OUTCOME_APPLIED_NO_CHANGE if session.state == new_state else OUTCOME_APPLIED
    reason = match_reason if not note else f"{match_reason}, {note}"
    return Decision(
        outcome=outcome,
        session_id=session.id,
        session=updated,
        previous_state=session.state,
        reason=reason,
    )


def _originate(candidate: Candidate, sessions: Mapping[str, Session], now: float) -> Decision:
    """New session in spawning, promoted straight to the candidate's state."""
    if candidate.is_push and isinstance(candidate.kind, HookKind) and candidate.kind.ends_turn:
        return Decision(
            outcome=OUTCOME_REJECTED_UNKNOWN_SESSION,
            reason=f"{candidate.kind.value} for untracked session",
        )
    if candidate.session_id:
        return Decision(
            outcome=OUTCOME_REJECTED_UNKNOWN_SESSION,
            session_id=candidate.session_id,
            reason="explicit session id not found",
        )

    rejection, note = check_transition(STATE_SPAWNING, candidate.state)
    if rejection is not None:
        return Decision(outcome=rejection, reason=note)

    seed = Session(
        id=new_session_id(candidate, sessions),
        project_name=candidate.project_name or "",
        project_path=candidate.cwd,
        state=STATE_SPAWNING,
        last_activity=0.0,
    )
    created = merge_candidate(seed, candidate, candidate.state, now)
    reason = "originated" if not note else f"originated, {note}"
    return Decision(
        outcome=OUTCOME_CREATED,
        session_id=created.id,
        session=created,
        previous_state=STATE_SPAWNING,
        reason=reason,
    )


def collect_expired_records(
    hook_records: Mapping[str, HookRecord],
    sessions: Mapping[str, Session],
    now: float,
    grace_window: float,
) -> List[str]:
    """Session ids whose grace record can be dropped.

    A record goes once it is past the grace window and its session is gone.
    Records for live sessions are dropped by the Registry when a newer scan
    update is accepted.
    """
    return [
        sid for sid, record in hook_records.items()
        if not record.is_protected(now, grace_window) and sid not in sessions
    ]