"""
Engine - wires producers, registry, dispatcher, and collaborators together.

Push events arrive on HTTP handler threads. They are parsed there (so a
malformed body is answered and recorded immediately) and queued for a
single ingest worker, which preserves arrival order into the registry.
The scanner runs on its own thread and submits directly. The dispatcher
consumes the registry's change stream and fires notifier triggers.
"""

import queue
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .daemon_logging import DaemonLogger
from .dispatcher import SideEffectDispatcher
from .hook_events import MalformedEvent, parse_hook_payload
from .implementations import RealProcess, RealTmux
from .models import Candidate, Decision, OUTCOME_REJECTED_MALFORMED, Session
from .protocols import ProcessInterface, TmuxInterface
from .registry import SessionRegistry
from .scanner import Scanner
from .session_meta import SessionMetaStore
from .settings import EngineSettings
from .status_constants import SOURCE_PUSH, get_state_lane


_STOP = object()


class Engine:
    """The reconciliation engine and its collaborators."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        tmux: Optional[TmuxInterface] = None,
        process: Optional[ProcessInterface] = None,
        meta_store: Optional[SessionMetaStore] = None,
        log: Optional[DaemonLogger] = None,
        sinks: Optional[List[Callable]] = None,
        clock: Callable[[], float] = time.time,
        scan: bool = True,
    ):
        self.settings = settings or EngineSettings()
        self.tmux = tmux if tmux is not None else RealTmux()
        self.meta_store = meta_store or SessionMetaStore()
        self.log = log
        self._clock = clock

        self.registry = SessionRegistry(
            grace_window=self.settings.grace_window, clock=clock, log=log
        )
        self.dispatcher = SideEffectDispatcher(
            sinks=sinks, on_error=log.warn if log else None
        )
        self.scanner: Optional[Scanner] = None
        if scan:
            self.scanner = Scanner(
                self.registry,
                self.tmux,
                process=process if process is not None else RealProcess(),
                interval=self.settings.scan_interval,
                missing_pane_grace=self.settings.missing_pane_grace,
                log=log,
                clock=clock,
            )

        self._ingest: "queue.Queue[Any]" = queue.Queue()
        self._ingest_thread: Optional[threading.Thread] = None
        self.started_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Push ingress
    # ------------------------------------------------------------------

    def parse_push(self, payload: Any) -> Candidate:
        """Parse a decoded hook payload; malformed ones are recorded and re-raised."""
        try:
            return parse_hook_payload(payload, self.settings.permission_tools)
        except MalformedEvent as e:
            self.record_malformed(str(e), payload)
            raise

    def record_malformed(self, reason: str, payload: Any = None) -> None:
        kind = ""
        cwd = ""
        if isinstance(payload, dict):
            kind = str(payload.get("hook_type") or payload.get("hook_event_name") or "")
            cwd = payload.get("cwd") if isinstance(payload.get("cwd"), str) else ""
        self.registry.record_rejection(
            SOURCE_PUSH, kind or "unknown", OUTCOME_REJECTED_MALFORMED, reason, cwd
        )
        if self.log:
            self.log.debug(f"Malformed push event: {reason}")

    def submit_push(self, payload: Any) -> Candidate:
        """Validate and queue a push event. Raises MalformedEvent."""
        candidate = self.parse_push(payload)
        self._ingest.put(candidate)
        return candidate

    def ingest_push(self, payload: Any) -> Decision:
        """Parse and apply a push event synchronously."""
        return self.registry.upsert(self.parse_push(payload))

    def _ingest_loop(self) -> None:
        while True:
            item = self._ingest.get()
            if item is _STOP:
                return
            try:
                self.registry.upsert(item)
            except Exception as e:
                if self.log:
                    self.log.error(f"Push ingest failed: {e}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.started_at = self._clock()
        self._ingest_thread = threading.Thread(
            target=self._ingest_loop, name="c3-ingest", daemon=True
        )
        self._ingest_thread.start()
        self.dispatcher.start(self.registry)
        if self.scanner is not None:
            self.scanner.start()
        if self.log:
            self.log.success(
                f"Engine started (grace {self.settings.grace_window:g}s, "
                f"scan {'every %gs' % self.settings.scan_interval if self.scanner else 'off'})"
            )

    def stop(self) -> None:
        """Stop producers, drain queued pushes, then stop the dispatcher."""
        if self.scanner is not None:
            self.scanner.stop()
        if self._ingest_thread is not None:
            self._ingest.put(_STOP)
            self._ingest_thread.join(5.0)
            self._ingest_thread = None
        self.dispatcher.stop()
        if self.log:
            self.log.info("Engine stopped")

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def find_session(self, session_id: str) -> Optional[Session]:
        return self.registry.get(session_id)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Sessions merged with pin/tag, pinned first then most recent."""
        meta = self.meta_store.get_meta()
        rows = []
        for session in self.registry.list():
            row = session.to_dict()
            entry = meta.get(session.id)
            row["tag"] = entry.tag if entry else None
            row["pinned"] = entry.pinned if entry else False
            row["lane"] = get_state_lane(session.state)
            rows.append(row)
        rows.sort(key=lambda r: (not r["pinned"], -r["last_activity"]))
        return rows

    def debug_info(self) -> Dict[str, Any]:
        info = self.registry.debug_info()
        info["scan_ticks"] = self.scanner.tick_count if self.scanner else 0
        info["queued_pushes"] = self._ingest.qsize()
        return info

    def health(self) -> Dict[str, Any]:
        uptime = self._clock() - self.started_at if self.started_at else 0.0
        return {
            "status": "ok",
            "sessions": len(self.registry),
            "uptime_secs": round(uptime, 1),
            "scanner": bool(self.scanner and self.scanner.running),
        }
