"""
Infer a session's state from its Claude Code transcript.

Claude Code appends every conversation event to
~/.claude/projects/{encoded-path}/{sessionId}.jsonl. When a pane shows the
idle marker, the tail of the newest transcript tells whether Claude is
waiting for a prompt or stopped on a tool call that needs approval.

Only the last few kilobytes are read; the scanner calls this for every
idle pane on every tick.
"""

import json
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .hook_events import truncate_command
from .models import PendingAction
from .settings import get_claude_projects_dir
from .status_constants import (
    STATE_AWAITING_INPUT,
    STATE_AWAITING_PERMISSION,
    STATE_ERROR,
    STATE_PROCESSING,
)


TAIL_LINES = 30

# Seconds of transcript silence before a state is trusted
INPUT_IDLE_SECONDS = 15
PERMISSION_IDLE_SECONDS = 5

NOISE_TYPES = frozenset({"progress", "system", "file-history-snapshot", "summary"})

BOOKKEEPING_PREFIXES = (
    "<local-command-caveat>",
    "<bash-input>",
    "<bash-stdout>",
    "<bash-stderr>",
)
INTERRUPT_MARKER = "[Request interrupted by user]"


@dataclass
class TranscriptState:
    """Result of reading a transcript tail."""

    state: str
    pending_action: Optional[PendingAction] = None
    last_message_at: Optional[float] = None


def encode_project_path(path: str) -> str:
    """Encode a project path to Claude Code's directory naming format.

    /home/user/my.project -> -home-user-my-project
    """
    return path.replace("/", "-").replace(".", "-")


def find_latest_transcript(cwd: str, projects_dir: Optional[Path] = None) -> Optional[Path]:
    """Most recently modified .jsonl for a working directory, if any."""
    base = projects_dir or get_claude_projects_dir()
    project_dir = base / encode_project_path(cwd)
    try:
        candidates = [p for p in project_dir.iterdir() if p.suffix == ".jsonl"]
    except OSError:
        return None
    if not candidates:
        return None

    def mtime(p: Path) -> float:
        try:
            return p.stat().st_mtime
        except OSError:
            return 0.0

    return max(candidates, key=mtime)


def _read_lines_reversed(filepath: Path, max_bytes: int = 64 * 1024) -> List[str]:
    """Read the last chunk of a file and return lines in reverse order."""
    try:
        file_size = filepath.stat().st_size
    except OSError:
        return []

    read_size = min(file_size, max_bytes)
    try:
        with open(filepath, "rb") as f:
            f.seek(max(0, file_size - read_size))
            chunk = f.read().decode("utf-8", errors="replace")
    except OSError:
        return []

    lines = chunk.split("\n")
    # First line may be partial if we didn't read from start
    if file_size > read_size and lines:
        lines = lines[1:]
    return [line for line in reversed(lines) if line.strip()]


def parse_timestamp(value) -> Optional[float]:
    """ISO-8601 string (with Z or offset) to epoch seconds."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


def extract_timestamp(entry: dict) -> Optional[float]:
    """Timestamp of an entry: top level, then message, then data.message."""
    ts = parse_timestamp(entry.get("timestamp"))
    if ts is not None:
        return ts
    message = entry.get("message")
    if isinstance(message, dict):
        ts = parse_timestamp(message.get("timestamp"))
        if ts is not None:
            return ts
    data = entry.get("data")
    if isinstance(data, dict) and isinstance(data.get("message"), dict):
        return parse_timestamp(data["message"].get("timestamp"))
    return None


def _blocks(content) -> List[dict]:
    if isinstance(content, list):
        return [b for b in content if isinstance(b, dict)]
    return []


def is_conversation_message(entry: dict) -> bool:
    """True for real user/assistant turns, False for noise and bookkeeping."""
    entry_type = entry.get("type", "")
    if entry_type in NOISE_TYPES:
        return False
    if entry.get("isMeta"):
        return False

    message = entry.get("message")
    if not isinstance(message, dict):
        return False
    content = message.get("content")

    if entry_type == "user":
        if isinstance(content, str):
            if content.startswith(BOOKKEEPING_PREFIXES) or content == INTERRUPT_MARKER:
                return False
        for block in _blocks(content):
            if block.get("type") == "text" and INTERRUPT_MARKER in str(block.get("text", "")):
                return False

    role = message.get("role", "")
    return (entry_type, role) in (("user", "user"), ("assistant", "assistant"))


def _permission_from_blocks(blocks: List[dict]) -> PendingAction:
    tool_uses = [b for b in blocks if b.get("type") == "tool_use"]
    last = tool_uses[-1] if tool_uses else {}
    tool = last.get("name") if isinstance(last.get("name"), str) else None
    tool_input = last.get("input") if isinstance(last.get("input"), dict) else {}
    command = tool_input.get("command")
    if not isinstance(command, str):
        command = None
    return PendingAction.permission(tool, truncate_command(command))


def infer_state(entries: List[dict], idle_seconds: float) -> TranscriptState:
    """Derive a state from transcript entries, newest first.

    Pure function - no side effects, fully testable.
    """
    last_message_at = None
    for entry in entries:
        last_message_at = extract_timestamp(entry)
        if last_message_at is not None:
            break

    def waiting_for_input() -> TranscriptState:
        return TranscriptState(STATE_AWAITING_INPUT, PendingAction.input(), last_message_at)

    def processing() -> TranscriptState:
        return TranscriptState(STATE_PROCESSING, None, last_message_at)

    for entry in entries:
        if not is_conversation_message(entry):
            continue

        content = entry["message"].get("content")
        blocks = _blocks(content)
        block_types = {b.get("type") for b in blocks}

        if entry["type"] == "user":
            if "tool_result" in block_types:
                return processing()
            if idle_seconds > INPUT_IDLE_SECONDS:
                return waiting_for_input()
            return processing()

        # assistant
        if entry.get("isApiErrorMessage"):
            return TranscriptState(STATE_ERROR, None, last_message_at)
        if "tool_use" in block_types:
            if idle_seconds > PERMISSION_IDLE_SECONDS:
                return TranscriptState(
                    STATE_AWAITING_PERMISSION,
                    _permission_from_blocks(blocks),
                    last_message_at,
                )
            return processing()
        if "text" in block_types:
            return waiting_for_input()
        if "thinking" in block_types:
            return processing()
        if isinstance(content, str):
            return waiting_for_input()

    if idle_seconds > INPUT_IDLE_SECONDS:
        return waiting_for_input()
    return processing()


def read_entries(path: Path, limit: int = TAIL_LINES) -> List[dict]:
    """Parse the last `limit` JSON lines of a transcript, newest first."""
    entries = []
    for line in _read_lines_reversed(path)[:limit]:
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(entry, dict):
            entries.append(entry)
    return entries


def read_transcript_state(path: Path, now: Optional[float] = None) -> TranscriptState:
    """Infer state from a transcript file on disk."""
    now = time.time() if now is None else now
    entries = read_entries(path)
    if not entries:
        return TranscriptState(STATE_PROCESSING)
    try:
        idle = max(0.0, now - path.stat().st_mtime)
    except OSError:
        idle = 0.0
    return infer_state(entries, idle)


def last_message_time(path: Optional[Path]) -> Optional[float]:
    """Timestamp of the newest entry that has one."""
    if path is None:
        return None
    for entry in read_entries(path):
        ts = extract_timestamp(entry)
        if ts is not None:
            return ts
    return None
