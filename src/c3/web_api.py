"""
API data helpers for the web server, and the HTTP client the CLI uses
to talk to a running `c3 serve`.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from .settings import DEFAULT_HOST, DEFAULT_PORT
from .status_constants import get_state_color, get_state_emoji


# CSS color values for web (Rich colors -> CSS hex)
WEB_COLORS = {
    "green": "#22c55e",
    "yellow": "#eab308",
    "orange1": "#f97316",
    "red": "#ef4444",
    "dim": "#6b7280",
    "cyan": "#06b6d4",
    "magenta": "#a855f7",
}


def get_web_color(state_color: str) -> str:
    """Convert Rich color name to CSS hex color."""
    return WEB_COLORS.get(state_color, "#6b7280")


def format_age(seconds: float) -> str:
    """Compact age like '42s', '5m', '3h'."""
    seconds = max(0, int(seconds))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def _decorate(row: Dict[str, Any], now: float) -> Dict[str, Any]:
    row = dict(row)
    row["emoji"] = get_state_emoji(row["state"])
    row["color"] = get_web_color(get_state_color(row["state"]))
    row["age"] = format_age(now - row["last_activity"]) if row["last_activity"] else ""
    return row


def get_sessions_data(engine, now: Optional[float] = None) -> Dict[str, Any]:
    """Session snapshot for GET /sessions.

    Returns:
        {"timestamp", "sessions": [...], "counts": {state: n}}
    """
    now = time.time() if now is None else now
    sessions = [_decorate(row, now) for row in engine.snapshot()]
    counts: Dict[str, int] = {}
    for row in sessions:
        counts[row["state"]] = counts.get(row["state"], 0) + 1
    return {"timestamp": now, "sessions": sessions, "counts": counts}


# =============================================================================
# Client
# =============================================================================

@dataclass
class ClientResult:
    """Result of a request to a running server."""
    ok: bool
    data: Any = None
    error: str = ""

    def __post_init__(self):
        if self.data is None:
            self.data = {}


def server_url(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> str:
    return f"http://{host}:{port}"


class C3Client:
    """HTTP client for the c3 server's read and control API."""

    def __init__(self, base_url: Optional[str] = None, timeout: float = 5.0):
        self.base_url = (base_url or server_url()).rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, body: Optional[dict] = None) -> ClientResult:
        url = f"{self.base_url}{path}"
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = Request(url, data=data, method=method)
        if data is not None:
            req.add_header("Content-Type", "application/json")

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                result = json.loads(resp.read().decode("utf-8"))
                ok = result.get("ok", True) if isinstance(result, dict) else True
                return ClientResult(ok=ok, data=result)
        except HTTPError as e:
            try:
                error_body = json.loads(e.read().decode("utf-8"))
                return ClientResult(ok=False, error=error_body.get("error", str(e)))
            except (json.JSONDecodeError, UnicodeDecodeError, AttributeError):
                return ClientResult(ok=False, error=f"HTTP {e.code}: {e.reason}")
        except (URLError, OSError) as e:
            return ClientResult(ok=False, error=f"Connection error: {e}")
        except json.JSONDecodeError as e:
            return ClientResult(ok=False, error=f"Invalid response: {e}")

    @staticmethod
    def _session_path(session_id: str, action: str = "") -> str:
        path = f"/api/sessions/{quote(session_id, safe='')}"
        return f"{path}/{action}" if action else path

    # --- Reads ---

    def sessions(self) -> ClientResult:
        return self._request("GET", "/sessions")

    def debug(self) -> ClientResult:
        return self._request("GET", "/debug")

    def health(self) -> ClientResult:
        return self._request("GET", "/health")

    # --- Commands ---

    def focus(self, session_id: str) -> ClientResult:
        return self._request("POST", self._session_path(session_id, "focus"), {})

    def close(self, session_id: str) -> ClientResult:
        return self._request("POST", self._session_path(session_id, "close"), {})

    def send_input(self, session_id: str, text: str, enter: bool = True) -> ClientResult:
        return self._request(
            "POST", self._session_path(session_id, "input"),
            {"text": text, "enter": enter},
        )

    def set_meta(
        self, session_id: str, tag: Optional[str] = None, pinned: Optional[bool] = None,
    ) -> ClientResult:
        body: Dict[str, Any] = {}
        if tag is not None:
            body["tag"] = tag
        if pinned is not None:
            body["pinned"] = pinned
        return self._request("PUT", self._session_path(session_id, "meta"), body)

    def dismiss(self, session_id: str) -> ClientResult:
        return self._request("DELETE", self._session_path(session_id))


def sessions_list(result: ClientResult) -> List[Dict[str, Any]]:
    """Session rows from a /sessions result, empty on failure."""
    if not result.ok or not isinstance(result.data, dict):
        return []
    return list(result.data.get("sessions", []))
