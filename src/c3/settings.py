"""
Paths and engine defaults for c3.

All on-disk state lives under ~/.c3 unless C3_DIR is set (used by tests
for isolation). Tunables default here and can be overridden from
config.yaml via EngineSettings.from_config().
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9398
DEFAULT_HOOK_URL = f"http://{DEFAULT_HOST}:{DEFAULT_PORT}/hook"

DEFAULT_PERMISSION_TOOLS = ["Bash", "Write", "Edit"]


def get_c3_dir() -> Path:
    """Get the c3 state directory.

    Returns ~/.c3 by default. Respects C3_DIR for test isolation.
    """
    c3_dir = os.environ.get("C3_DIR")
    if c3_dir:
        return Path(c3_dir)
    return Path.home() / ".c3"


def get_config_path() -> Path:
    """Path to config.yaml."""
    return get_c3_dir() / "config.yaml"


def get_session_meta_path() -> Path:
    """Path to the persisted pin/tag metadata."""
    return get_c3_dir() / "session-meta.json"


def get_log_path() -> Path:
    """Path to the engine log file."""
    return get_c3_dir() / "c3.log"


def get_claude_projects_dir() -> Path:
    """Directory holding Claude Code transcripts.

    Respects C3_CLAUDE_PROJECTS so tests can point at a fixture tree.
    """
    override = os.environ.get("C3_CLAUDE_PROJECTS")
    if override:
        return Path(override)
    return Path.home() / ".claude" / "projects"


def get_hook_url() -> str:
    """URL the hook handler posts events to."""
    return os.environ.get("C3_HOOK_URL") or DEFAULT_HOOK_URL


def ensure_c3_dir() -> Path:
    """Create the state directory if needed and return it."""
    path = get_c3_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass
class EngineSettings:
    """Tunables for the reconciliation engine.

    grace_window: seconds a push update shields a session from scans.
    scan_interval: seconds between scanner ticks.
    missing_pane_grace: seconds a pane may be absent before removal.
    """

    grace_window: float = 5.0
    scan_interval: float = 3.0
    missing_pane_grace: float = 5.0
    permission_tools: List[str] = field(
        default_factory=lambda: list(DEFAULT_PERMISSION_TOOLS)
    )
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def __post_init__(self):
        # The window must outlast one scan tick or scans race the push path
        min_grace = self.scan_interval + 1.0
        if self.grace_window < min_grace:
            self.grace_window = min_grace

    @classmethod
    def from_config(cls, config: dict) -> "EngineSettings":
        """Build settings from a loaded config dict, ignoring bad values."""
        engine = config.get("engine") or {}
        server = config.get("server") or {}
        kwargs = {}

        if isinstance(engine, dict):
            for key in ("grace_window", "scan_interval", "missing_pane_grace"):
                value = engine.get(key)
                if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                    kwargs[key] = float(value)

        if isinstance(server, dict):
            host = server.get("host")
            if isinstance(host, str) and host:
                kwargs["host"] = host
            port = server.get("port")
            if isinstance(port, int) and not isinstance(port, bool) and 0 < port < 65536:
                kwargs["port"] = port

        tools = config.get("permission_tools")
        if isinstance(tools, list) and all(isinstance(t, str) for t in tools):
            kwargs["permission_tools"] = list(tools)

        return cls(**kwargs)
