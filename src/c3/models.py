"""
Data model for the reconciliation engine.

Session records are owned by the SessionRegistry; everything else here is
an immutable value passed between the producers, the Reconciler, and the
subscribers of the change stream.
"""

from dataclasses import dataclass, asdict, replace
from typing import Optional

from .status_constants import (
    ACTION_INPUT,
    ACTION_PERMISSION,
    SOURCE_PUSH,
    SOURCE_SCAN,
    STATE_SPAWNING,
)


# =============================================================================
# Decision Outcomes
# =============================================================================

OUTCOME_APPLIED = "applied"
OUTCOME_APPLIED_NO_CHANGE = "applied_no_change"
OUTCOME_CREATED = "created"
OUTCOME_REMOVED = "removed"
OUTCOME_SKIPPED = "skipped"
OUTCOME_REJECTED_PROTECTED = "rejected_protected"
OUTCOME_REJECTED_MALFORMED = "rejected_malformed"
OUTCOME_REJECTED_UNKNOWN_SESSION = "rejected_unknown_session"
OUTCOME_REJECTED_STALE = "rejected_stale"
OUTCOME_REJECTED_ILLEGAL = "rejected_illegal_transition"

ACCEPTED_OUTCOMES = frozenset({
    OUTCOME_APPLIED,
    OUTCOME_APPLIED_NO_CHANGE,
    OUTCOME_CREATED,
    OUTCOME_REMOVED,
})

# Change stream event kinds
CHANGE_UPDATED = "updated"
CHANGE_REMOVED = "removed"

SCAN_KIND = "scan"
REMOVE_KIND = "remove"


@dataclass(frozen=True)
class PendingAction:
    """What an awaiting session is waiting on."""

    type: str
    description: str
    tool: Optional[str] = None
    command: Optional[str] = None

    @classmethod
    def permission(cls, tool: Optional[str], command: Optional[str] = None) -> "PendingAction":
        return cls(
            type=ACTION_PERMISSION,
            description=f"Wants to use {tool or 'a tool'}",
            tool=tool,
            command=command,
        )

    @classmethod
    def input(cls, description: str = "Waiting for user input") -> "PendingAction":
        return cls(type=ACTION_INPUT, description=description)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PendingAction":
        return cls(
            type=data.get("type", ACTION_INPUT),
            description=data.get("description", ""),
            tool=data.get("tool"),
            command=data.get("command"),
        )


@dataclass
class Session:
    """One tracked agent/pane pairing."""

    id: str
    project_name: str
    project_path: str
    state: str = STATE_SPAWNING
    pane_target: Optional[str] = None
    last_activity: float = 0.0
    pending_action: Optional[PendingAction] = None
    agent_session_id: Optional[str] = None
    last_message_at: Optional[float] = None
    source: str = SOURCE_PUSH

    def copy(self) -> "Session":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_name": self.project_name,
            "project_path": self.project_path,
            "state": self.state,
            "pane_target": self.pane_target,
            "last_activity": self.last_activity,
            "pending_action": self.pending_action.to_dict() if self.pending_action else None,
            "agent_session_id": self.agent_session_id,
            "last_message_at": self.last_message_at,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        pending = data.get("pending_action")
        return cls(
            id=data["id"],
            project_name=data.get("project_name", ""),
            project_path=data.get("project_path", ""),
            state=data.get("state", STATE_SPAWNING),
            pane_target=data.get("pane_target"),
            last_activity=data.get("last_activity", 0.0),
            pending_action=PendingAction.from_dict(pending) if pending else None,
            agent_session_id=data.get("agent_session_id"),
            last_message_at=data.get("last_message_at"),
            source=data.get("source", SOURCE_PUSH),
        )


@dataclass(frozen=True)
class Candidate:
    """A proposed state update from either producer, normalized.

    Push candidates carry a hook kind and correlate by pane, session id
    hint, or working directory. Scan candidates always carry a pane target.
    A removal candidate (remove=True) names the session to drop.
    """

    source: str
    kind: str
    state: Optional[str] = None
    cwd: str = ""
    project_name: Optional[str] = None
    pane_target: Optional[str] = None
    session_hint: Optional[str] = None
    session_id: Optional[str] = None
    tool_name: Optional[str] = None
    pending_action: Optional[PendingAction] = None
    auto_approved: bool = False
    remove: bool = False
    last_message_at: Optional[float] = None

    @property
    def is_push(self) -> bool:
        return self.source == SOURCE_PUSH

    @property
    def is_scan(self) -> bool:
        return self.source == SOURCE_SCAN

    @classmethod
    def removal(cls, session_id: str, pane_target: Optional[str] = None) -> "Candidate":
        """A scan-sourced removal for a session whose pane vanished."""
        return cls(
            source=SOURCE_SCAN,
            kind=REMOVE_KIND,
            session_id=session_id,
            pane_target=pane_target,
            remove=True,
        )


@dataclass
class HookRecord:
    """Grace bookkeeping for a session's latest push update."""

    session_id: str
    pushed_at: float
    stopped_at: Optional[float] = None

    def age(self, now: float) -> float:
        return max(0.0, now - self.pushed_at)

    def is_protected(self, now: float, grace_window: float) -> bool:
        return self.age(now) < grace_window

    def stopped_within(self, now: float, window: float) -> bool:
        return self.stopped_at is not None and now - self.stopped_at < window

    def to_dict(self, now: float, grace_window: float) -> dict:
        return {
            "session_id": self.session_id,
            "age_secs": round(self.age(now), 2),
            "protected": self.is_protected(now, grace_window),
        }


@dataclass(frozen=True)
class IngressEvent:
    """One ingress occurrence, as kept in the debug trail."""

    timestamp: float
    source: str
    kind: str
    cwd: str = ""
    tool_name: Optional[str] = None
    matched_session: Optional[str] = None
    state: Optional[str] = None
    accepted: bool = False
    outcome: str = ""
    reason: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Decision:
    """The Reconciler's verdict on a candidate.

    session is the record to store (None for rejections and removals).
    previous_state is the state before the update (spawning for creations).
    """

    outcome: str
    session_id: Optional[str] = None
    session: Optional[Session] = None
    previous_state: Optional[str] = None
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.outcome in ACCEPTED_OUTCOMES

    @property
    def is_transition(self) -> bool:
        return (
            self.session is not None
            and self.previous_state is not None
            and self.previous_state != self.session.state
        )


@dataclass(frozen=True)
class ChangeEvent:
    """One item on the Registry's change-notification stream."""

    kind: str
    session_id: str
    session: Optional[Session] = None
    previous_state: Optional[str] = None

    @property
    def is_transition(self) -> bool:
        return (
            self.kind == CHANGE_UPDATED
            and self.session is not None
            and self.previous_state != self.session.state
        )


@dataclass
class SessionMeta:
    """User-authored pin/tag for a session id."""

    tag: Optional[str] = None
    pinned: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.tag and not self.pinned

    def to_dict(self) -> dict:
        return {"tag": self.tag, "pinned": self.pinned}

    @classmethod
    def from_dict(cls, data: dict) -> "SessionMeta":
        tag = data.get("tag")
        return cls(tag=tag or None, pinned=bool(data.get("pinned", False)))


@dataclass
class PaneInfo:
    """One row of `tmux list-panes -a`."""

    target: str
    pid: int
    command: str
    cwd: str
    title: str = ""
    window_name: str = ""
