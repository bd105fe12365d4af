"""
Protocol definitions for external dependencies.

These interfaces allow dependency injection for testing, enabling us to
swap real implementations (tmux via libtmux, pgrep via subprocess) with
mock implementations in tests.
"""

from typing import List, Protocol, runtime_checkable

from .models import PaneInfo


class TmuxError(Exception):
    """A tmux query failed in a way worth retrying on the next tick."""


@runtime_checkable
class TmuxInterface(Protocol):
    """Interface for the tmux operations the engine needs"""

    def list_panes(self) -> List[PaneInfo]:
        """Enumerate every pane on the server.

        Returns:
            One PaneInfo per pane; empty when no server is running

        Raises:
            TmuxError: the query failed for any other reason
        """
        ...

    def focus_pane(self, target: str) -> bool:
        """Select the window and pane for a session:window.pane target."""
        ...

    def kill_pane(self, target: str) -> bool:
        """Kill a pane."""
        ...

    def send_text(self, target: str, text: str, enter: bool = True) -> bool:
        """Type literal text into a pane, optionally followed by Enter."""
        ...


@runtime_checkable
class ProcessInterface(Protocol):
    """Interface for process table queries"""

    def has_child_matching(self, pid: int, pattern: str) -> bool:
        """True if pid has a child process whose command line matches pattern."""
        ...
