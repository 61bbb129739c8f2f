import threading
import time
from typing import Any, Dict, Hashable, Tuple

from container_check import config


class DashboardCache:
    """Small in-process TTL cache for dashboard projections, keyed by (role, *extra)."""

    def __init__(self, ttl_seconds: int = 60):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[Tuple, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Tuple[Hashable, ...]):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def set(self, key: Tuple[Hashable, ...], value: Any) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic(), value)

    def invalidate(self, *roles) -> None:
        roles = set(roles)
        with self._lock:
            for key in [k for k in self._entries if k[0] in roles]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


dashboard_cache = DashboardCache(config.DASHBOARD_CACHE_TTL)
