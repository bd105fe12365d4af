"""
Unit tests for the scanner, using MockTmux in place of a tmux server.
"""

import json
import time
from unittest.mock import MagicMock, patch

import pytest

from c3.mocks import MockProcess, MockTmux
from c3.models import PaneInfo
from c3.registry import SessionRegistry
from c3.scanner import (
    Scanner,
    derive_project_name,
    has_claude_title,
    infer_pane_candidate,
    is_claude_pane,
)
from c3.status_constants import (
    STATE_AWAITING_INPUT,
    STATE_AWAITING_PERMISSION,
    STATE_COMPLETE,
    STATE_PROCESSING,
)
from tests.fixtures import push_candidate


def pane(command="claude", title="", cwd="/home/dev/proj", target="main:1.0", pid=1000):
    return PaneInfo(target=target, pid=pid, command=command, cwd=cwd, title=title)


class TestPaneClassification:
    """Test picking Claude panes out of the pane list."""

    def test_claude_command(self):
        assert is_claude_pane(pane(command="claude"))

    def test_node_with_claude_child(self):
        process = MockProcess(claude_parents={42})
        assert is_claude_pane(pane(command="node", pid=42), process)
        assert not is_claude_pane(pane(command="node", pid=43), process)

    def test_shell_with_claude_title(self):
        assert is_claude_pane(pane(command="zsh", title="✳ my-feature"))
        assert not is_claude_pane(pane(command="zsh", title="dev@host"))

    def test_other_programs(self):
        assert not is_claude_pane(pane(command="vim"))

    def test_has_claude_title(self):
        assert has_claude_title("✳ Claude Code")
        assert has_claude_title("Claude Code")
        assert not has_claude_title("htop")


class TestDeriveProjectName:

    def test_title_wins(self):
        assert derive_project_name(pane(title="✳ Fix login bug")) == "Fix login bug"

    def test_falls_back_to_cwd(self):
        assert derive_project_name(pane(title="")) == "proj"
        assert derive_project_name(pane(title="✳ Claude")) == "proj"

    def test_hostname_title_ignored(self):
        assert derive_project_name(pane(title="box.local")) == "proj"


class TestInferPaneCandidate:
    """Test state inference for one pane."""

    def test_shell_is_complete(self, projects_dir):
        candidate = infer_pane_candidate(pane(command="zsh", title="✳ done"), 0, projects_dir)
        assert candidate.state == STATE_COMPLETE
        assert candidate.pane_target == "main:1.0"
        assert candidate.is_scan

    def test_spinner_title_is_processing(self, projects_dir):
        candidate = infer_pane_candidate(pane(title="⠂ Working"), 0, projects_dir)
        assert candidate.state == STATE_PROCESSING

    def test_idle_marker_without_transcript_waits_for_input(self, projects_dir):
        candidate = infer_pane_candidate(pane(title="✳ proj"), 0, projects_dir)
        assert candidate.state == STATE_AWAITING_INPUT
        assert candidate.pending_action.type == "input"

    def test_idle_marker_reads_transcript(self, projects_dir):
        folder = projects_dir / "-home-dev-proj"
        folder.mkdir()
        entry = {
            "type": "assistant",
            "message": {"role": "assistant", "content": [
                {"type": "tool_use", "name": "Bash", "input": {"command": "make deploy"}},
            ]},
        }
        transcript = folder / "s.jsonl"
        transcript.write_text(json.dumps(entry) + "\n")
        mtime = transcript.stat().st_mtime

        candidate = infer_pane_candidate(pane(title="✳ proj"), mtime + 30, projects_dir)

        assert candidate.state == STATE_AWAITING_PERMISSION
        assert candidate.tool_name == "Bash"
        assert candidate.pending_action.command == "make deploy"


class TestScannerTick:
    """Test full ticks against a registry."""

    @pytest.fixture
    def tmux(self):
        return MockTmux()

    @pytest.fixture
    def registry(self, clock):
        return SessionRegistry(grace_window=5.0, clock=clock)

    @pytest.fixture
    def scanner(self, registry, tmux, clock, projects_dir):
        return Scanner(registry, tmux, process=MockProcess(), interval=3.0,
                       missing_pane_grace=5.0, clock=clock, projects_dir=projects_dir)

    def test_discovers_claude_panes(self, scanner, tmux, registry):
        tmux.add_pane("main:1.0", "/home/dev/proj", title="⠂ Working")
        tmux.add_pane("main:2.0", "/home/dev/other", command="vim")

        decisions = scanner.tick()

        assert [d.outcome for d in decisions] == ["created"]
        assert registry.get("tmux:main:1.0").state == STATE_PROCESSING

    def test_failed_list_skips_tick(self, scanner, tmux, registry):
        log = MagicMock()
        scanner.log = log
        tmux.add_pane("main:1.0", "/home/dev/proj")
        tmux.fail_next_list = True

        assert scanner.tick() == []
        assert len(registry) == 0
        log.warn.assert_called_once()

        scanner.tick()
        assert len(registry) == 1

    def test_missing_pane_removed_after_grace(self, scanner, tmux, registry, clock):
        tmux.add_pane("main:1.0", "/home/dev/proj")
        scanner.tick()
        tmux.remove_pane("main:1.0")

        clock.advance(3)
        scanner.tick()
        assert len(registry) == 1

        clock.advance(5)
        decisions = scanner.tick()
        assert decisions[-1].outcome == "removed"
        assert len(registry) == 0

    def test_pane_that_returns_is_not_removed(self, scanner, tmux, registry, clock):
        tmux.add_pane("main:1.0", "/home/dev/proj")
        scanner.tick()
        tmux.remove_pane("main:1.0")
        clock.advance(3)
        scanner.tick()
        tmux.add_pane("main:1.0", "/home/dev/proj")
        clock.advance(3)
        scanner.tick()
        tmux.remove_pane("main:1.0")
        clock.advance(3)
        scanner.tick()

        assert len(registry) == 1

    def test_hook_only_session_is_never_removed(self, scanner, registry, clock):
        registry.upsert(push_candidate(cwd="/home/dev/lonely"))
        clock.advance(60)
        scanner.tick()
        assert len(registry) == 1

    def test_removal_overrides_grace_window(self, scanner, tmux, registry, clock):
        tmux.add_pane("main:1.0", "/home/dev/proj")
        scanner.tick()
        tmux.remove_pane("main:1.0")
        clock.advance(3)
        scanner.tick()
        clock.advance(4)
        registry.upsert(push_candidate(
            tmux={"session": "main", "window": "1", "pane": "0"}
        ))
        clock.advance(1)

        decisions = scanner.tick()

        assert len(registry) == 0
        assert "overrides grace window" in decisions[-1].reason

    def test_protected_session_keeps_push_state(self, scanner, tmux, registry, clock):
        tmux.add_pane("main:1.0", "/home/dev/proj", title="⠂ Working")
        registry.upsert(push_candidate(
            "PreToolUse", tool_name="Bash",
            tmux={"session": "main", "window": "1", "pane": "0"},
        ))
        clock.advance(2)

        decisions = scanner.tick()

        assert decisions[0].outcome == "rejected_protected"
        assert registry.get("tmux:main:1.0").state == STATE_AWAITING_PERMISSION


class TestScannerThread:

    def test_start_stop(self, clock):
        registry = SessionRegistry(clock=clock)
        scanner = Scanner(registry, MockTmux(), interval=0.01, clock=clock)

        scanner.start()
        assert scanner.running
        scanner.stop()

        assert not scanner.running
        assert scanner.tick_count >= 1

    def test_tick_exception_is_logged_and_loop_survives(self, clock):
        registry = SessionRegistry(clock=clock)
        log = MagicMock()
        scanner = Scanner(registry, MockTmux(), interval=0.01, clock=clock, log=log)

        with patch.object(scanner, "tick", side_effect=RuntimeError("boom")):
            scanner.start()
            time.sleep(0.05)
            scanner.stop()

        log.error.assert_called()
