"""Tests for the hook handler."""

import io
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from c3.hook_handler import (
    build_payload,
    get_tmux_context,
    handle_hook_event,
    post_event,
    skip_permissions_enabled,
)


class TestGetTmuxContext:

    def test_outside_tmux(self):
        assert get_tmux_context() is None

    def test_parses_display_message(self, monkeypatch):
        monkeypatch.setenv("TMUX_PANE", "%3")
        result = MagicMock(returncode=0, stdout="main\t1\t0\tproj\n")
        with patch("c3.hook_handler.subprocess.run", return_value=result) as run:
            ctx = get_tmux_context()

        assert ctx == {"session": "main", "window": "1", "pane": "0", "window_name": "proj"}
        assert run.call_args[0][0][:5] == ["tmux", "display-message", "-p", "-t", "%3"]

    def test_tmux_failure(self):
        result = MagicMock(returncode=1, stdout="")
        with patch("c3.hook_handler.subprocess.run", return_value=result):
            assert get_tmux_context("%3") is None

    def test_tmux_timeout(self):
        with patch("c3.hook_handler.subprocess.run",
                   side_effect=subprocess.TimeoutExpired("tmux", 1.0)):
            assert get_tmux_context("%3") is None

    def test_tmux_missing(self):
        with patch("c3.hook_handler.subprocess.run", side_effect=FileNotFoundError()):
            assert get_tmux_context("%3") is None

    def test_short_output(self):
        result = MagicMock(returncode=0, stdout="main\t1\n")
        with patch("c3.hook_handler.subprocess.run", return_value=result):
            assert get_tmux_context("%3") is None


class TestSkipPermissions:

    def test_bypass_mode(self):
        assert skip_permissions_enabled({"permission_mode": "bypassPermissions"})

    def test_default_mode(self):
        assert not skip_permissions_enabled({"permission_mode": "default"})

    def test_env_var(self, monkeypatch):
        monkeypatch.setenv("CLAUDE_SKIP_PERMISSIONS", "1")
        assert skip_permissions_enabled({})


class TestBuildPayload:

    def test_pre_tool_use(self):
        data = {
            "session_id": "abc",
            "cwd": "/home/dev/proj",
            "tool_name": "Bash",
            "tool_input": {"command": "npm test"},
        }
        tmux = {"session": "main", "window": "1", "pane": "0"}

        payload = build_payload("PreToolUse", data, tmux)

        assert payload == {
            "hook_type": "PreToolUse",
            "cwd": "/home/dev/proj",
            "session_id": "abc",
            "tool_name": "Bash",
            "tool_input": {"command": "npm test"},
            "skip_permissions": False,
            "tmux": tmux,
        }

    def test_cwd_falls_back_to_process_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert build_payload("Stop", {})["cwd"] == str(tmp_path)

    def test_legacy_tool_fields(self):
        payload = build_payload("PreToolUse", {"cwd": "/x", "tool": "Edit", "input": {"file_path": "/x/a"}})
        assert payload["tool_name"] == "Edit"
        assert payload["tool_input"] == {"file_path": "/x/a"}

    def test_notification_message(self):
        payload = build_payload("Notification", {"cwd": "/x", "message": "Waiting"})
        assert payload["message"] == "Waiting"

    def test_no_tmux_block_outside_tmux(self):
        assert "tmux" not in build_payload("Stop", {"cwd": "/x"})

    def test_c3_session_id_from_env(self, monkeypatch):
        monkeypatch.setenv("C3_SESSION_ID", "tmux:main:1.0")
        assert build_payload("Stop", {"cwd": "/x"})["c3_session_id"] == "tmux:main:1.0"

    def test_no_c3_session_id_by_default(self):
        assert "c3_session_id" not in build_payload("Stop", {"cwd": "/x"})


class TestPostEvent:

    def test_success(self):
        resp = MagicMock(status=202)
        resp.__enter__.return_value = resp
        with patch("c3.hook_handler.urlopen", return_value=resp) as mock_urlopen:
            assert post_event({"hook_type": "Stop"}, url="http://127.0.0.1:9398/hook")

        req = mock_urlopen.call_args[0][0]
        assert req.full_url == "http://127.0.0.1:9398/hook"
        assert json.loads(req.data) == {"hook_type": "Stop"}

    def test_server_down_returns_false(self):
        with patch("c3.hook_handler.urlopen", side_effect=OSError("refused")):
            assert not post_event({"hook_type": "Stop"})

    def test_bad_url_returns_false(self):
        assert not post_event({}, url="not a url")

    def test_uses_env_url(self, monkeypatch):
        monkeypatch.setenv("C3_HOOK_URL", "http://10.0.0.5:9000/hook")
        with patch("c3.hook_handler.urlopen", side_effect=OSError()) as mock_urlopen:
            post_event({})
        assert mock_urlopen.call_args[0][0].full_url == "http://10.0.0.5:9000/hook"


class TestHandleHookEvent:

    @pytest.fixture
    def post(self):
        with patch("c3.hook_handler.post_event") as mock_post:
            yield mock_post

    def test_forwards_event(self, monkeypatch, post):
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps({"cwd": "/x", "session_id": "s"})))
        handle_hook_event("Stop")

        payload = post.call_args[0][0]
        assert payload["hook_type"] == "Stop"
        assert payload["session_id"] == "s"

    def test_kind_from_hook_event_name(self, monkeypatch, post):
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps({"cwd": "/x", "hook_event_name": "SessionEnd"})))
        handle_hook_event()
        assert post.call_args[0][0]["hook_type"] == "SessionEnd"

    @pytest.mark.parametrize("stdin", ["", "   \n", "{broken", "[1, 2]"])
    def test_bad_stdin_is_silent(self, monkeypatch, post, stdin):
        monkeypatch.setattr("sys.stdin", io.StringIO(stdin))
        handle_hook_event("Stop")
        post.assert_not_called()

    def test_no_kind_is_silent(self, monkeypatch, post):
        monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps({"cwd": "/x"})))
        handle_hook_event()
        post.assert_not_called()
