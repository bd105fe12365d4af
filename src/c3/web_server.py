"""
HTTP listener for c3: push ingress, snapshots, and the control API.

POST /hook accepts one hook event per request and answers before the
event is applied. Everything else is read-only snapshots (GET) or the
command surface (POST/PUT/DELETE under /api/sessions/).
Uses Python stdlib http.server - no additional dependencies required.
"""

import json
import signal
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import unquote, urlparse

from .daemon_logging import DaemonLogger
from .engine import Engine
from .hook_events import MalformedEvent
from .web_api import get_sessions_data


MAX_BODY_BYTES = 1024 * 1024


class C3Handler(BaseHTTPRequestHandler):
    """HTTP request handler bound to one Engine."""

    # Set by create_server before starting
    engine: Optional[Engine] = None

    def do_GET(self) -> None:
        """Handle GET requests."""
        from . import web_control_api as api

        path = urlparse(self.path).path

        if path == "/sessions" or path == "/api/sessions":
            self._serve_json(get_sessions_data(self.engine))
        elif path == "/debug" or path == "/api/debug":
            self._serve_json(self.engine.debug_info())
        elif path == "/health":
            self._serve_json(self.engine.health())
        elif path == "/api/meta":
            self._serve_json(api.get_meta(self.engine))
        else:
            self._send_json_error(404, "Not Found")

    def _serve_json(self, data) -> None:
        """Serve JSON data."""
        try:
            body = json.dumps(data, indent=2, default=str)
            body_bytes = body.encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body_bytes)))
            self.send_header("Access-Control-Allow-Origin", "*")
            self.send_header("Cache-Control", "no-cache")
            self.end_headers()
            self.wfile.write(body_bytes)
        except Exception as e:
            self.send_error(500, f"Internal error: {e}")

    def _read_json_body(self) -> Optional[object]:
        """Read and parse JSON body from request. Returns None on error."""
        try:
            content_length = int(self.headers.get("Content-Length", 0))
        except (TypeError, ValueError):
            self._send_json_error(400, "Invalid Content-Length")
            return None
        if content_length > MAX_BODY_BYTES:
            self._send_json_error(413, "Body too large")
            return None
        if content_length == 0:
            return {}
        try:
            body = self.rfile.read(content_length)
            return json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._send_json_error(400, f"Invalid JSON body: {e}")
            return None

    def _send_json_response(self, data: dict, status: int = 200) -> None:
        """Send a JSON response with the given status code."""
        body = json.dumps(data, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(body)

    def _send_json_error(self, status: int, message: str) -> None:
        """Send a JSON error response."""
        self._send_json_response({"ok": False, "error": message}, status=status)

    # -----------------------------------------------------------------
    # Push ingress
    # -----------------------------------------------------------------

    def _handle_hook(self) -> None:
        """Queue one hook event. Malformed bodies are recorded and rejected."""
        body = self._read_json_body()
        if body is None:
            self.engine.record_malformed("unparseable body")
            return  # Error already sent

        try:
            candidate = self.engine.submit_push(body)
        except MalformedEvent as e:
            self._send_json_error(400, str(e))
            return
        self._send_json_response(
            {"ok": True, "queued": True, "kind": candidate.kind.value}, status=202
        )

    # -----------------------------------------------------------------
    # Control API (POST / PUT / DELETE)
    # -----------------------------------------------------------------

    def _route_control(self, method: str) -> None:
        """Route POST/PUT/DELETE requests to control API handlers."""
        from .web_control_api import ControlError

        path = urlparse(self.path).path
        if method == "POST" and path == "/hook":
            self._handle_hook()
            return

        body = self._read_json_body()
        if body is None:
            return  # Error already sent
        if not isinstance(body, dict):
            self._send_json_error(400, "JSON body must be an object")
            return

        try:
            result = self._dispatch_control(method, path, body)
            self._send_json_response(result)
        except ControlError as e:
            self._send_json_error(e.status, str(e))
        except Exception as e:
            self._send_json_error(500, f"Internal error: {e}")

    def _dispatch_control(self, method: str, path: str, body: dict) -> dict:
        """Dispatch a control request to the appropriate handler."""
        from . import web_control_api as api
        from .web_control_api import ControlError

        engine = self.engine
        parts = path.strip("/").split("/")

        # /api/sessions/<id>[/<action>]
        if len(parts) >= 3 and parts[0] == "api" and parts[1] == "sessions":
            session_id = unquote(parts[2])
            action = parts[3] if len(parts) > 3 else ""

            if method == "POST":
                if action == "focus":
                    return api.focus_session(engine, session_id)
                if action == "close":
                    return api.close_session(engine, session_id)
                if action == "input":
                    return api.send_input(
                        engine, session_id,
                        text=body.get("text", ""),
                        enter=body.get("enter", True),
                    )

            elif method == "PUT":
                if action == "meta":
                    return api.set_meta(
                        engine, session_id,
                        tag=body.get("tag"),
                        pinned=body.get("pinned"),
                    )

            elif method == "DELETE":
                if action == "":
                    return api.dismiss_session(engine, session_id)

        raise ControlError(f"Unknown {method} endpoint: {path}", status=404)

    def do_OPTIONS(self) -> None:
        """Handle CORS preflight requests."""
        self.send_response(204)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Access-Control-Max-Age", "86400")
        self.end_headers()

    def do_POST(self) -> None:
        """Handle POST requests (hook ingress and control API)."""
        self._route_control("POST")

    def do_PUT(self) -> None:
        """Handle PUT requests (control API)."""
        self._route_control("PUT")

    def do_DELETE(self) -> None:
        """Handle DELETE requests (control API)."""
        self._route_control("DELETE")

    def log_message(self, format: str, *args) -> None:
        """Only log failed requests; hooks and polls are too chatty."""
        if args and len(args) >= 2:
            status = str(args[1])
            if status.startswith("2"):
                return
        sys.stderr.write(f"[c3] {args[0] if args else format}\n")


def create_server(engine: Engine, host: str, port: int) -> ThreadingHTTPServer:
    """Bind a threaded HTTP server for engine. Raises OSError if the port is taken."""
    handler = type("BoundC3Handler", (C3Handler,), {"engine": engine})
    server = ThreadingHTTPServer((host, port), handler)
    server.daemon_threads = True
    return server


def run_server(
    engine: Engine,
    host: str = "127.0.0.1",
    port: int = 9398,
    log: Optional[DaemonLogger] = None,
) -> None:
    """Run the listener and the engine until SIGINT/SIGTERM.

    Args:
        engine: engine to serve
        host: Host to bind to (default: 127.0.0.1 for localhost only)
        port: Port to listen on (default: 9398)
        log: logger for lifecycle messages
    """
    if host not in ("127.0.0.1", "localhost") and log:
        log.warn(f"Binding to {host}: the control API has no authentication")

    try:
        server = create_server(engine, host, port)
    except OSError as e:
        if log:
            log.error(f"Cannot bind {host}:{port}: {e}")
        raise

    bound_host, bound_port = server.server_address[:2]
    engine.start()
    if log:
        log.section("c3")
        log.info(f"Hook endpoint:  http://{bound_host}:{bound_port}/hook")
        log.info(f"Sessions:       http://{bound_host}:{bound_port}/sessions")
        log.info(f"Debug:          http://{bound_host}:{bound_port}/debug")

    def handle_shutdown(signum, frame):
        # shutdown() blocks until serve_forever returns, so call it off-thread
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    try:
        server.serve_forever()
    finally:
        server.server_close()
        engine.stop()
