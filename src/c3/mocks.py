"""
In-memory implementations of the protocol interfaces, for tests.
"""

from typing import Dict, List, Optional, Set, Tuple

from .models import PaneInfo
from .protocols import TmuxError


class MockTmux:
    """Mock tmux server: panes live in a dict, commands are recorded."""

    def __init__(self, panes: Optional[List[PaneInfo]] = None):
        self.panes: Dict[str, PaneInfo] = {p.target: p for p in (panes or [])}
        self.focused: List[str] = []
        self.killed: List[str] = []
        self.sent: List[Tuple[str, str, bool]] = []
        self.fail_next_list = False

    def add_pane(
        self,
        target: str,
        cwd: str,
        command: str = "claude",
        title: str = "",
        pid: int = 1000,
        window_name: str = "",
    ) -> PaneInfo:
        pane = PaneInfo(
            target=target, pid=pid, command=command, cwd=cwd,
            title=title, window_name=window_name,
        )
        self.panes[target] = pane
        return pane

    def remove_pane(self, target: str) -> None:
        self.panes.pop(target, None)

    def list_panes(self) -> List[PaneInfo]:
        if self.fail_next_list:
            self.fail_next_list = False
            raise TmuxError("simulated list-panes failure")
        return list(self.panes.values())

    def focus_pane(self, target: str) -> bool:
        if target not in self.panes:
            return False
        self.focused.append(target)
        return True

    def kill_pane(self, target: str) -> bool:
        if target not in self.panes:
            return False
        self.killed.append(target)
        del self.panes[target]
        return True

    def send_text(self, target: str, text: str, enter: bool = True) -> bool:
        if target not in self.panes:
            return False
        self.sent.append((target, text, enter))
        return True


class MockProcess:
    """Mock process table: pids listed in claude_parents have a claude child."""

    def __init__(self, claude_parents: Optional[Set[int]] = None):
        self.claude_parents = set(claude_parents or ())

    def has_child_matching(self, pid: int, pattern: str) -> bool:
        return pid in self.claude_parents
