from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple


class CacheBackend(Protocol):
    """Anything with ``get``/``set(key, value, ttl)``; Django cache backends qualify."""

    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any, ttl: Optional[float]) -> None:
        ...


class TTLCache:
    """In-memory TTL cache used when no distributed cache is configured.

    Reads and writes for a key are atomic; there are no cross-key transactions.
    """

    def __init__(self, time_func: Callable[[], float] = time.monotonic) -> None:
        self._time_func = time_func
        self._storage: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any:
        with self._lock:
            item = self._storage.get(key)
            if not item:
                self._misses += 1
                return None
            expires_at, value = item
            if expires_at <= self._time_func():
                self._storage.pop(key, None)
                self._misses += 1
                return None
            self._hits += 1
            return value

    def set(self, key: str, value: Any, ttl: Optional[float]) -> None:
        expires_at = float("inf") if ttl is None else self._time_func() + ttl
        with self._lock:
            self._storage[key] = (expires_at, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._storage.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "keys": len(self._storage)}


__all__ = ["CacheBackend", "TTLCache"]
