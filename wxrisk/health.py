"""In-memory provider health registry.

Services report each upstream failure and success here so that swallowed
fallback-chain errors stay visible to operators.
"""
from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Mapping, Optional


class ProviderHealth:
    """Stores provider failure counters and the last successful call per provider."""

    def __init__(self) -> None:
        self._failures: Dict[str, int] = {}
        self._last_success: Dict[str, str] = {}
        self._last_error: Dict[str, str] = {}
        self._lock = Lock()

    def record_failure(self, provider: str, reason: str = "", increment: int = 1) -> None:
        if not provider:
            raise ValueError("provider must be provided")
        if increment <= 0:
            raise ValueError("increment must be positive")
        with self._lock:
            self._failures[provider] = self._failures.get(provider, 0) + increment
            if reason:
                self._last_error[provider] = reason

    def record_success(self, provider: str, when: Optional[datetime] = None) -> None:
        if not provider:
            raise ValueError("provider must be provided")
        when = when or datetime.now(timezone.utc)
        with self._lock:
            self._last_success[provider] = self._format_datetime(when)

    def snapshot(self, cache_stats: Optional[Mapping[str, int]] = None) -> Dict[str, object]:
        with self._lock:
            payload: Dict[str, object] = {
                "failures": dict(self._failures),
                "lastErrors": dict(self._last_error),
                "lastSuccess": dict(self._last_success),
            }
        if cache_stats is not None:
            payload["cache"] = {
                "hits": int(cache_stats.get("hits", 0)),
                "misses": int(cache_stats.get("misses", 0)),
                "keys": int(cache_stats.get("keys", 0)),
            }
        return payload

    @staticmethod
    def _format_datetime(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()


__all__ = ["ProviderHealth"]
