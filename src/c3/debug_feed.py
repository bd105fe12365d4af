"""
Bounded trail of recent ingress events, for diagnosis only.

Nothing that affects correctness reads from here.
"""

import threading
from collections import deque
from typing import List

from .models import IngressEvent


DEFAULT_CAPACITY = 50


class DebugFeed:
    """Ring buffer keeping the most recent ingress events."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = capacity
        self._events: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(self, event: IngressEvent) -> None:
        with self._lock:
            self._events.append(event)

    def entries(self) -> List[IngressEvent]:
        """Recorded events, newest first."""
        with self._lock:
            return list(reversed(self._events))

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
