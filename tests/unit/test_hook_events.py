"""
Unit tests for push payload parsing.
"""

import pytest

from c3.hook_events import (
    HookKind,
    MalformedEvent,
    extract_command,
    pane_target_from,
    parse_hook_payload,
    project_name_for,
    target_state,
    truncate_command,
)
from c3.status_constants import (
    SOURCE_PUSH,
    STATE_AWAITING_INPUT,
    STATE_AWAITING_PERMISSION,
    STATE_COMPLETE,
    STATE_PROCESSING,
)
from tests.fixtures import make_payload, tmux_block


class TestHookKind:

    def test_parse_known(self):
        assert HookKind.parse("PreToolUse") is HookKind.PRE_TOOL_USE

    def test_parse_unknown_raises(self):
        with pytest.raises(MalformedEvent, match="unknown hook kind"):
            HookKind.parse("Bogus")

    def test_ends_turn(self):
        assert HookKind.STOP.ends_turn
        assert HookKind.SESSION_END.ends_turn
        assert not HookKind.NOTIFICATION.ends_turn


class TestTargetState:
    """Test hook kind to state mapping."""

    @pytest.mark.parametrize("kind,expected", [
        (HookKind.SESSION_START, STATE_PROCESSING),
        (HookKind.USER_PROMPT_SUBMIT, STATE_PROCESSING),
        (HookKind.POST_TOOL_USE, STATE_PROCESSING),
        (HookKind.PERMISSION_REQUEST, STATE_AWAITING_PERMISSION),
        (HookKind.NOTIFICATION, STATE_AWAITING_INPUT),
        (HookKind.STOP, STATE_COMPLETE),
        (HookKind.SESSION_END, STATE_COMPLETE),
    ])
    def test_fixed_kinds(self, kind, expected):
        assert target_state(kind, None, False) == expected

    def test_pre_tool_use_permission_tool(self):
        assert target_state(HookKind.PRE_TOOL_USE, "Bash", False) == STATE_AWAITING_PERMISSION

    def test_pre_tool_use_other_tool(self):
        assert target_state(HookKind.PRE_TOOL_USE, "Read", False) == STATE_PROCESSING

    def test_pre_tool_use_auto_approved(self):
        assert target_state(HookKind.PRE_TOOL_USE, "Bash", True) == STATE_PROCESSING

    def test_custom_permission_tools(self):
        assert target_state(HookKind.PRE_TOOL_USE, "WebFetch", False, ["WebFetch"]) == \
            STATE_AWAITING_PERMISSION


class TestCommandExtraction:

    def test_truncates_long_commands(self):
        result = truncate_command("x" * 150)
        assert len(result) == 100
        assert result.endswith("...")

    def test_short_command_unchanged(self):
        assert truncate_command("ls -la") == "ls -la"

    def test_prefers_command_then_file_path(self):
        assert extract_command({"command": "make"}) == "make"
        assert extract_command({"file_path": "/a/b.py"}) == "/a/b.py"
        assert extract_command({"old_string": "x"}) is None
        assert extract_command(None) is None


class TestPaneTarget:

    def test_builds_target(self):
        assert pane_target_from(tmux_block("work:2.1")) == "work:2.1"

    def test_incomplete_block(self):
        assert pane_target_from({"session": "work", "window": "2"}) is None
        assert pane_target_from({"session": "", "window": "1", "pane": "0"}) is None
        assert pane_target_from("main:1.0") is None

    def test_zero_indexes_are_valid(self):
        assert pane_target_from({"session": "s", "window": 0, "pane": 0}) == "s:0.0"


class TestParseHookPayload:
    """Test full payload normalization."""

    def test_pre_tool_use_bash(self):
        candidate = parse_hook_payload(make_payload(
            "PreToolUse",
            cwd="/home/dev/proj/",
            session_id="abc",
            tool_name="Bash",
            tool_input={"command": "npm test"},
            tmux=tmux_block("main:1.0"),
        ))

        assert candidate.source == SOURCE_PUSH
        assert candidate.kind is HookKind.PRE_TOOL_USE
        assert candidate.state == STATE_AWAITING_PERMISSION
        assert candidate.cwd == "/home/dev/proj"
        assert candidate.project_name == "proj"
        assert candidate.pane_target == "main:1.0"
        assert candidate.session_hint == "abc"
        assert candidate.pending_action.tool == "Bash"
        assert candidate.pending_action.command == "npm test"

    def test_accepts_hook_event_name(self):
        data = make_payload()
        del data["hook_type"]
        data["hook_event_name"] = "Stop"
        assert parse_hook_payload(data).kind is HookKind.STOP

    def test_notification_message_becomes_description(self):
        candidate = parse_hook_payload(make_payload(
            "Notification", message="Claude is waiting for your input"
        ))
        assert candidate.pending_action.description == "Claude is waiting for your input"

    def test_skip_permissions_marks_auto_approved(self):
        candidate = parse_hook_payload(make_payload("PreToolUse", tool_name="Bash",
                                                    skip_permissions=True))
        assert candidate.auto_approved
        assert candidate.pending_action is None

    def test_null_skip_permissions_is_not_auto_approved(self):
        candidate = parse_hook_payload(make_payload("PreToolUse", tool_name="Bash",
                                                    skip_permissions=None))
        assert not candidate.auto_approved

    def test_c3_session_id_is_explicit_id(self):
        candidate = parse_hook_payload(make_payload(
            "Stop", session_id="abc", c3_session_id="tmux:main:1.0"
        ))
        assert candidate.session_id == "tmux:main:1.0"
        assert candidate.session_hint == "abc"

    def test_claude_session_id_is_only_a_hint(self):
        candidate = parse_hook_payload(make_payload("Stop", session_id="abc"))
        assert candidate.session_id is None

    @pytest.mark.parametrize("data,match", [
        ([], "JSON object"),
        ({"cwd": "/x"}, "missing hook_type"),
        ({"hook_type": "Stop"}, "missing cwd"),
        ({"hook_type": "Stop", "cwd": ""}, "missing cwd"),
        ({"hook_type": "Nope", "cwd": "/x"}, "unknown hook kind"),
        ({"hook_type": "Stop", "cwd": "/x", "tool_name": 5}, "tool_name"),
        ({"hook_type": "Stop", "cwd": "/x", "skip_permissions": "false"}, "skip_permissions"),
        ({"hook_type": "Stop", "cwd": "/x", "skip_permissions": 1}, "skip_permissions"),
        ({"hook_type": "Stop", "cwd": "/x", "c3_session_id": 7}, "c3_session_id"),
    ])
    def test_malformed(self, data, match):
        with pytest.raises(MalformedEvent, match=match):
            parse_hook_payload(data)


class TestProjectName:

    def test_basename(self):
        assert project_name_for("/home/dev/proj") == "proj"

    def test_root(self):
        assert project_name_for("/") == "/"
