"""
TTL Cache

Bounded key/value cache with per-entry time-to-live, used for search
responses. Eviction is opportunistic: it runs on write when the cache is
full (expired entries first, then oldest by insertion time). There is no
background sweeper.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("paperkb.common.ttl_cache")

_WHITESPACE = re.compile(r"\s+")


@dataclass
class CacheEntry:
    """A cached value with its write time and lifetime (seconds)"""
    value: Any
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class TTLCache:
    """
    In-process TTL cache.

    Constructed once per process and passed to whoever needs it. Each key
    is independent and writes replace, so concurrent coroutines may share
    one instance without locking.
    """

    def __init__(self, max_size: int = 10000, clock: Callable[[], float] = time.time):
        self.max_size = max_size
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    @staticmethod
    def normalize_key(prefix: str, text: str) -> str:
        """Cache key for free text: ``prefix_`` + lowercased text, whitespace runs as ``_``."""
        return f"{prefix}_{_WHITESPACE.sub('_', text.strip().lower())}"

    def set(self, key: str, value: Any, ttl_minutes: float = 60) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict()
        self._entries[key] = CacheEntry(
            value=value,
            timestamp=self._clock(),
            ttl=ttl_minutes * 60,
        )

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, int]:
        self._drop_expired()
        return {"size": len(self._entries), "max_size": self.max_size}

    def _drop_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict(self) -> None:
        """Make room for one more entry."""
        dropped = self._drop_expired()
        overflow = len(self._entries) - self.max_size + 1
        if overflow > 0:
            oldest = sorted(self._entries.items(), key=lambda kv: kv[1].timestamp)
            for key, _ in oldest[:overflow]:
                del self._entries[key]
        logger.debug("Cache eviction: %d expired, %d oldest", dropped, max(overflow, 0))
