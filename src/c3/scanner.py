"""
Scanner - periodic fallback producer.

Every tick enumerates all tmux panes, picks out the ones running Claude
Code, and infers a candidate state for each from the pane title and the
transcript on disk. Candidates are gathered with no lock held and then
submitted one at a time to the registry. Sessions whose pane has been gone
for longer than missing_pane_grace are removed.

A failing tick (tmux unreachable, filesystem error) is logged and skipped;
the next tick retries.
"""

import socket
import threading
import time
from pathlib import Path, PurePath
from typing import Callable, Dict, List, Optional, Tuple

from .daemon_logging import DaemonLogger
from .models import Candidate, Decision, PaneInfo, PendingAction, SCAN_KIND
from .protocols import ProcessInterface, TmuxError, TmuxInterface
from .registry import SessionRegistry
from .status_constants import (
    SOURCE_SCAN,
    STATE_AWAITING_INPUT,
    STATE_COMPLETE,
    STATE_PROCESSING,
)
from .transcript_reader import (
    find_latest_transcript,
    last_message_time,
    read_transcript_state,
)


SHELL_COMMANDS = frozenset({"zsh", "bash", "fish", "sh"})
IDLE_MARKERS = ("✳", "✴")


# =============================================================================
# Pane classification
# =============================================================================

def has_claude_title(title: str) -> bool:
    return title.strip().startswith(IDLE_MARKERS) or "Claude" in title


def is_claude_pane(pane: PaneInfo, process: Optional[ProcessInterface] = None) -> bool:
    """Whether a pane hosts (or just hosted) Claude Code.

    Running: the pane command is claude, or node with a claude child.
    Finished: back at a shell but the title still carries Claude's marker.
    """
    command = pane.command
    if "claude" in command:
        return True
    if command == "node" and process is not None:
        if process.has_child_matching(pane.pid, "claude"):
            return True
    return command in SHELL_COMMANDS and has_claude_title(pane.title)


def _is_host_title(title: str) -> bool:
    if "localhost" in title or title.endswith(".local") or title.endswith(".localdomain"):
        return True
    hostname = socket.gethostname()
    return title in (hostname, hostname.split(".")[0])


def derive_project_name(pane: PaneInfo) -> str:
    """Display name: Claude's pane title when set, else the cwd basename."""
    title = pane.title.strip()
    if title and not _is_host_title(title):
        clean = title.lstrip("".join(IDLE_MARKERS)).strip()
        if clean and clean.lower() != "claude":
            return clean
    return PurePath(pane.cwd).name or "claude"


def infer_pane_candidate(
    pane: PaneInfo,
    now: Optional[float] = None,
    projects_dir: Optional[Path] = None,
) -> Candidate:
    """Candidate state for one Claude pane.

    Shell command -> complete. Idle marker -> read the transcript.
    Anything else (spinner, tool output) -> processing.
    """
    now = time.time() if now is None else now
    transcript = find_latest_transcript(pane.cwd, projects_dir)
    pending: Optional[PendingAction] = None

    if pane.command in SHELL_COMMANDS:
        state = STATE_COMPLETE
        message_at = last_message_time(transcript)
    elif pane.title.strip().startswith("✳"):
        if transcript is None:
            state = STATE_AWAITING_INPUT
            pending = PendingAction.input()
            message_at = None
        else:
            inferred = read_transcript_state(transcript, now)
            state = inferred.state
            pending = inferred.pending_action
            message_at = inferred.last_message_at
    else:
        state = STATE_PROCESSING
        message_at = last_message_time(transcript)

    return Candidate(
        source=SOURCE_SCAN,
        kind=SCAN_KIND,
        state=state,
        cwd=pane.cwd,
        project_name=derive_project_name(pane),
        pane_target=pane.target,
        tool_name=pending.tool if pending else None,
        pending_action=pending,
        last_message_at=message_at,
    )


# =============================================================================
# Scanner thread
# =============================================================================

class Scanner:
    """Background producer polling tmux every `interval` seconds."""

    def __init__(
        self,
        registry: SessionRegistry,
        tmux: TmuxInterface,
        process: Optional[ProcessInterface] = None,
        interval: float = 3.0,
        missing_pane_grace: float = 5.0,
        log: Optional[DaemonLogger] = None,
        clock: Callable[[], float] = time.time,
        projects_dir: Optional[Path] = None,
    ):
        self.registry = registry
        self.tmux = tmux
        self.process = process
        self.interval = interval
        self.missing_pane_grace = missing_pane_grace
        self.log = log
        self._clock = clock
        self.projects_dir = projects_dir
        self._missing_since: Dict[str, float] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.tick_count = 0

    def gather(self) -> Optional[Tuple[List[PaneInfo], List[Candidate]]]:
        """Enumerate panes and infer candidates. None when the tick failed."""
        try:
            panes = self.tmux.list_panes()
        except TmuxError as e:
            if self.log:
                self.log.warn(f"Scan skipped: tmux query failed: {e}")
            return None

        candidates = []
        now = self._clock()
        for pane in panes:
            try:
                if not is_claude_pane(pane, self.process):
                    continue
                candidates.append(infer_pane_candidate(pane, now, self.projects_dir))
            except OSError as e:
                if self.log:
                    self.log.warn(f"Scan of {pane.target} failed: {e}")
        return panes, candidates

    def removals(self, live_targets: set) -> List[Candidate]:
        """Removal candidates for sessions whose pane has been gone too long."""
        now = self._clock()
        removals = []
        tracked = set()
        for session in self.registry.list():
            if not session.pane_target:
                continue
            tracked.add(session.id)
            if session.pane_target in live_targets:
                self._missing_since.pop(session.id, None)
                continue
            first_missing = self._missing_since.setdefault(session.id, now)
            if now - first_missing >= self.missing_pane_grace:
                removals.append(Candidate.removal(session.id, session.pane_target))

        for sid in list(self._missing_since):
            if sid not in tracked:
                del self._missing_since[sid]
        return removals

    def tick(self) -> List[Decision]:
        """Run one scan. Returns the registry's decisions, in submission order."""
        self.tick_count += 1
        gathered = self.gather()
        if gathered is None:
            return []
        panes, candidates = gathered

        decisions = [self.registry.upsert(c) for c in candidates]

        live_targets = {p.target for p in panes}
        for removal in self.removals(live_targets):
            decision = self.registry.upsert(removal)
            if decision.accepted:
                self._missing_since.pop(removal.session_id, None)
            decisions.append(decision)
        return decisions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="c3-scanner", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                # Never let one bad tick kill the scanner
                if self.log:
                    self.log.error(f"Scan tick failed: {e}")
            self._stop.wait(self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
