"""
Pytest configuration for c3 tests.

Every test gets its own C3_DIR and Claude projects directory so nothing
reads or writes the user's ~/.c3 or ~/.claude.
"""

import pytest

from c3 import config
from tests.fixtures import FakeClock


@pytest.fixture(autouse=True)
def isolated_c3_dir(tmp_path, monkeypatch):
    """Point all c3 state and transcript lookups at temp directories."""
    c3_dir = tmp_path / "c3-home"
    projects = tmp_path / "claude-projects"
    projects.mkdir()
    monkeypatch.setenv("C3_DIR", str(c3_dir))
    monkeypatch.setenv("C3_CLAUDE_PROJECTS", str(projects))
    monkeypatch.delenv("C3_HOOK_URL", raising=False)
    monkeypatch.delenv("C3_SERVER_URL", raising=False)
    monkeypatch.delenv("TMUX_PANE", raising=False)
    monkeypatch.delenv("C3_TMUX_SOCKET", raising=False)
    monkeypatch.delenv("CLAUDE_SKIP_PERMISSIONS", raising=False)
    monkeypatch.delenv("C3_SESSION_ID", raising=False)
    # CONFIG_PATH is resolved at import time
    monkeypatch.setattr(config, "CONFIG_PATH", c3_dir / "config.yaml")
    return c3_dir


@pytest.fixture
def projects_dir(tmp_path):
    """The Claude projects directory set up by isolated_c3_dir."""
    return tmp_path / "claude-projects"


@pytest.fixture
def clock():
    return FakeClock()
