"""
Real implementations of protocol interfaces.

These are production implementations that use libtmux for tmux operations
and pgrep for process lookups.
"""

import os
import subprocess
import time
from typing import List, Optional

import libtmux
from libtmux.exc import LibTmuxException

from .models import PaneInfo
from .protocols import TmuxError


PANE_FIELDS = [
    "#{session_name}:#{window_index}.#{pane_index}",
    "#{pane_pid}",
    "#{pane_current_command}",
    "#{pane_current_path}",
    "#{pane_title}",
    "#{window_name}",
]
PANE_FORMAT = "\t".join(PANE_FIELDS)

# tmux reports these when there is simply nothing to list
_NO_SERVER_MARKERS = ("no server running", "error connecting to", "no sessions")


def parse_pane_line(line: str) -> Optional[PaneInfo]:
    """Parse one tab-separated list-panes row. Returns None for short rows."""
    parts = line.split("\t")
    if len(parts) < 4:
        return None
    try:
        pid = int(parts[1])
    except ValueError:
        pid = 0
    return PaneInfo(
        target=parts[0],
        pid=pid,
        command=parts[2],
        cwd=parts[3],
        title=parts[4] if len(parts) > 4 else "",
        window_name=parts[5] if len(parts) > 5 else "",
    )


class RealTmux:
    """Production implementation of TmuxInterface using libtmux."""

    def __init__(self, socket_name: Optional[str] = None):
        """Initialize with optional socket name for test isolation.

        If no socket_name is provided, checks C3_TMUX_SOCKET env var.
        """
        self._socket_name = socket_name or os.environ.get("C3_TMUX_SOCKET")
        self._server: Optional[libtmux.Server] = None

    @property
    def server(self) -> libtmux.Server:
        """Lazy-load the tmux server connection."""
        if self._server is None:
            if self._socket_name:
                self._server = libtmux.Server(socket_name=self._socket_name)
            else:
                self._server = libtmux.Server()
        return self._server

    def _cmd(self, *args: str):
        try:
            return self.server.cmd(*args)
        except LibTmuxException as e:
            raise TmuxError(str(e)) from e

    def list_panes(self) -> List[PaneInfo]:
        result = self._cmd("list-panes", "-a", "-F", PANE_FORMAT)
        if result.returncode != 0:
            stderr = " ".join(result.stderr or []).lower()
            if any(marker in stderr for marker in _NO_SERVER_MARKERS):
                return []
            raise TmuxError(stderr or f"list-panes exited {result.returncode}")

        panes = []
        for line in result.stdout or []:
            pane = parse_pane_line(line)
            if pane is not None:
                panes.append(pane)
        return panes

    def focus_pane(self, target: str) -> bool:
        window = target.rsplit(".", 1)[0]
        try:
            if self._cmd("select-window", "-t", window).returncode != 0:
                return False
            return self._cmd("select-pane", "-t", target).returncode == 0
        except TmuxError:
            return False

    def kill_pane(self, target: str) -> bool:
        try:
            return self._cmd("kill-pane", "-t", target).returncode == 0
        except TmuxError:
            return False

    def send_text(self, target: str, text: str, enter: bool = True) -> bool:
        try:
            # Claude Code needs text and Enter as separate commands with a
            # short pause, otherwise the Enter is swallowed.
            if text:
                if self._cmd("send-keys", "-t", target, "-l", text).returncode != 0:
                    return False
                time.sleep(0.1)
            if enter:
                return self._cmd("send-keys", "-t", target, "Enter").returncode == 0
            return True
        except TmuxError:
            return False


class RealProcess:
    """Production implementation of ProcessInterface"""

    def has_child_matching(self, pid: int, pattern: str) -> bool:
        if pid <= 0:
            return False
        try:
            result = subprocess.run(
                ["pgrep", "-P", str(pid), "-f", pattern],
                capture_output=True, text=True, timeout=2,
            )
        except (OSError, subprocess.SubprocessError):
            return False
        return result.returncode == 0
