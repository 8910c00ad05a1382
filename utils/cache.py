from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """Process-wide cache of slowly changing values with explicit invalidation.

    Values are loaded on demand through the loader passed to ``get``; a value
    older than ``ttl_seconds`` is reloaded on the next read. ``invalidate``
    drops one key (or everything) so writers can force a refresh.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, loader: Callable[[], Any], ttl_seconds: float) -> Any:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry and ttl_seconds > 0 and now - entry[0] < ttl_seconds:
                return entry[1]
        value = loader()
        with self._lock:
            self._entries[key] = (time.monotonic(), value)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
