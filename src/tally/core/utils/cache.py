"""
In-memory TTL cache with an injectable clock.

Holds short-lived shared state such as the FX rate and per-user portfolio
values. Each consumer owns its own instance; nothing here is a process-wide
singleton, so tests drive expiry by passing a fake clock.

Expired entries are kept until overwritten or cleared so callers can still
reach the last known value when a refresh fails (see get_stale_data).
"""

import threading
import time
from dataclasses import dataclass
from typing import Any

from tally.core.types import Clock


@dataclass
class CacheEntry:
    data: Any
    stored_at: float


class TTLCache:
    """Thread-safe key/value cache where every entry shares one TTL."""

    def __init__(self, ttl_seconds: float, clock: Clock | None = None):
        """
        Args:
            ttl_seconds: Age after which an entry stops being served as fresh.
            clock: Zero-arg callable returning seconds. Defaults to time.monotonic.
        """
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def cache_data(self, key: str, data: Any) -> None:
        """Store data, resetting its age."""
        with self._lock:
            self._entries[key] = CacheEntry(data=data, stored_at=self._clock())

    def get_cached_data(self, key: str) -> Any | None:
        """Return data if present and younger than the TTL, else None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.stored_at >= self.ttl_seconds:
                return None
            return entry.data

    def get_stale_data(self, key: str) -> Any | None:
        """Return the last stored data regardless of age."""
        with self._lock:
            entry = self._entries.get(key)
            return entry.data if entry else None

    def age(self, key: str) -> float | None:
        """Seconds since the entry was stored, or None if missing."""
        with self._lock:
            entry = self._entries.get(key)
            return None if entry is None else self._clock() - entry.stored_at

    def clear_cache(self, key: str | None = None) -> None:
        """Clear a specific key or all cached data."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
