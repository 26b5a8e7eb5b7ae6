# site_intel/events/cache.py
"""
TTL dedup table with an injectable clock.

Entries are keyed by any hashable value and remember when they were first
seen.  A key seen again inside the TTL window is a duplicate; ``sweep``
drops everything older than the TTL.  No timers live here: whoever owns the
cache decides when to sweep, and tests drive time through ``clock``.
"""
from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Hashable, Optional

Clock = Callable[[], float]


class DedupCache:
    """Insert / lookup / sweep over a TTL-bounded key table."""

    def __init__(self, ttl: float, clock: Optional[Clock] = None) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        self.ttl = ttl
        self._clock: Clock = clock or time.monotonic
        self._seen: Dict[Hashable, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: Hashable) -> bool:
        return self.lookup(key)

    def lookup(self, key: Hashable) -> bool:
        """True if *key* was inserted less than ``ttl`` seconds ago."""
        with self._lock:
            seen_at = self._seen.get(key)
            return seen_at is not None and self._clock() - seen_at < self.ttl

    def insert(self, key: Hashable) -> None:
        with self._lock:
            self._seen[key] = self._clock()

    def check_and_insert(self, key: Hashable) -> bool:
        """Atomically record *key*; return True if it was a live duplicate."""
        with self._lock:
            now = self._clock()
            seen_at = self._seen.get(key)
            if seen_at is not None and now - seen_at < self.ttl:
                return True
            self._seen[key] = now
            return False

    def sweep(self) -> int:
        """Purge entries older than TTL; return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, ts in self._seen.items() if now - ts >= self.ttl]
            for key in expired:
                del self._seen[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._seen.clear()


__all__ = ["DedupCache", "Clock"]
