"""
Rich-based logging for the c3 engine.

Pretty console output for interactive `c3 serve` runs, plus a plain text
log file so the background engine can be diagnosed after the fact.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.theme import Theme

from .settings import get_log_path
from .status_constants import get_state_color


DAEMON_THEME = Theme({
    "info": "cyan",
    "warn": "yellow",
    "error": "bold red",
    "success": "bold green",
    "debug": "dim cyan",
    "dim": "dim white",
    "highlight": "bold white",
})


class DaemonLogger:
    """Logger writing styled lines to the console and plain lines to a file."""

    def __init__(
        self,
        log_file: Optional[Path] = None,
        console: Optional[Console] = None,
        verbose: bool = False,
    ):
        self.log_file = log_file or get_log_path()
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self.console = console or Console(theme=DAEMON_THEME)
        self.verbose = verbose

    def _write_to_file(self, message: str, level: str) -> None:
        """Append a plain text line to the log file."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{timestamp}] [{level}] {message}"
        try:
            with open(self.log_file, "a") as f:
                f.write(line + "\n")
        except OSError:
            pass

    def _log(self, style: str, label: str, message: str, level: str) -> None:
        self._write_to_file(message, level)
        now = datetime.now().strftime("%H:%M:%S")
        self.console.print(f"[dim]{now}[/dim] [{style}]{label:<5}[/{style}] {message}")

    def info(self, message: str) -> None:
        """Log info message."""
        self._log("info", "INFO", message, "INFO")

    def warn(self, message: str) -> None:
        """Log warning message."""
        self._log("warn", "WARN", message, "WARN")

    def error(self, message: str) -> None:
        """Log error message."""
        self._log("error", "ERROR", message, "ERROR")

    def success(self, message: str) -> None:
        """Log success message."""
        self._log("success", "OK", message, "INFO")

    def debug(self, message: str) -> None:
        """Log debug message. File always, console only when verbose."""
        self._write_to_file(message, "DEBUG")
        if self.verbose:
            now = datetime.now().strftime("%H:%M:%S")
            self.console.print(f"[dim]{now}[/dim] [debug]DEBUG[/debug] [dim]{message}[/dim]")

    def section(self, title: str) -> None:
        """Print a section divider."""
        self._write_to_file(f"=== {title} ===", "INFO")
        self.console.print()
        self.console.rule(f"[bold]{title}[/bold]", style="dim")

    def transition(self, session_id: str, project: str, old: str, new: str) -> None:
        """Log a session state transition."""
        style = get_state_color(new)
        self._write_to_file(f"{session_id} ({project}): {old} -> {new}", "INFO")
        now = datetime.now().strftime("%H:%M:%S")
        self.console.print(
            f"[dim]{now}[/dim] [{style}]●[/{style}] [bold]{project}[/bold] "
            f"[dim]{old}[/dim] → [{style}]{new}[/{style}] [dim]{session_id}[/dim]"
        )
