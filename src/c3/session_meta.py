"""
User-authored session metadata (pin flag and free-text tag).

Stored as JSON keyed by session id in ~/.c3/session-meta.json. Entries
outlive the sessions they describe; an entry with no tag and no pin is
dropped on write. The engine only merges this into presentation snapshots.
"""

import json
import threading
from pathlib import Path
from typing import Dict, Optional

from .models import SessionMeta
from .settings import get_session_meta_path


MAX_TAG_LENGTH = 64


def normalize_tag(tag: Optional[str]) -> Optional[str]:
    """Trim and bound a tag; empty means no tag."""
    if tag is None:
        return None
    tag = tag.strip()[:MAX_TAG_LENGTH].strip()
    return tag or None


class SessionMetaStore:
    """Thread-safe file-backed map of session id -> SessionMeta."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path or get_session_meta_path()
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, SessionMeta]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {
            sid: SessionMeta.from_dict(entry)
            for sid, entry in data.items()
            if isinstance(entry, dict)
        }

    def _write(self, meta: Dict[str, SessionMeta]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {sid: m.to_dict() for sid, m in meta.items() if not m.is_empty}
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True))
        tmp.replace(self.path)

    def get_meta(self) -> Dict[str, SessionMeta]:
        """All stored metadata."""
        with self._lock:
            return self._read()

    def get(self, session_id: str) -> SessionMeta:
        return self.get_meta().get(session_id, SessionMeta())

    def set_meta(
        self,
        session_id: str,
        tag: Optional[str] = None,
        pinned: Optional[bool] = None,
    ) -> SessionMeta:
        """Update tag and/or pin for a session; None leaves a field alone.

        Passing tag="" removes the tag.
        """
        with self._lock:
            meta = self._read()
            entry = meta.get(session_id, SessionMeta())
            if tag is not None:
                entry.tag = normalize_tag(tag)
            if pinned is not None:
                entry.pinned = bool(pinned)

            if entry.is_empty:
                meta.pop(session_id, None)
            else:
                meta[session_id] = entry
            self._write(meta)
            return entry
