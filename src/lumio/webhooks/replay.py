"""Bounded replay-detection cache for signed webhook timestamps.

Keys are ``"<provider>-<timestamp>"``; values are the signed timestamp.
A key is accepted once. The cache is insertion ordered: when it grows past
``max_size`` the first-inserted key is dropped (FIFO, O(1) via OrderedDict).
Independently, ``cleanup()`` drops every entry whose timestamp is more than
``max_age`` seconds behind the wall clock.

Example:
    cache = ReplayCache(max_size=1000, max_age=600)

    if not cache.check_and_store("stripe-1700000000", 1700000000):
        reject("Possible replay attack detected")
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field


@dataclass
class ReplayCache:
    """Process-local replay cache.

    All operations take an internal lock, so ``check_and_store`` is atomic
    across threads: two concurrent deliveries of the same key cannot both
    be accepted.
    """

    max_size: int = 1000
    max_age: int = 600
    _entries: OrderedDict[str, int] = field(default_factory=OrderedDict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")

    @staticmethod
    def make_key(provider: str, timestamp: int) -> str:
        return f"{provider}-{timestamp}"

    def check_and_store(self, key: str, timestamp: int) -> bool:
        """Record a key. Returns False if it was already seen (a replay)."""
        with self._lock:
            if key in self._entries:
                return False

            self._entries[key] = timestamp

            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

            return True

    def cleanup(self, now: float | None = None) -> int:
        """Delete entries older than max_age. Returns number removed."""
        if now is None:
            now = time.time()
        current = int(now)

        with self._lock:
            expired = [
                key
                for key, timestamp in self._entries.items()
                if current - timestamp > self.max_age
            ]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def size(self) -> int:
        """Number of tracked entries."""
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        return {"size": len(self._entries), "max_size": self.max_size}
