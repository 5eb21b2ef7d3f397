"""Time-boxed in-memory cache for successful LLM results.

Entries expire after a fixed TTL and the oldest entries are evicted once
the cache grows past its capacity. Process-local; lost on restart.
"""

import hashlib
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple


def build_cache_key(*parts: str) -> str:
    """Hash the semantically relevant inputs of a call into a cache key."""
    digest = hashlib.sha256()
    for part in parts:
        encoded = part.encode("utf-8")
        digest.update(len(encoded).to_bytes(8, "big"))
        digest.update(encoded)
    return digest.hexdigest()


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float


class ResultCache:
    """TTL + capacity bounded result cache keyed by content hash."""

    def __init__(
        self,
        ttl_seconds: float = 600.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = max(0.0, ttl_seconds)
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Tuple[bool, Optional[Any]]:
        """Return ``(hit, value)``; expired entries count as misses."""
        self._purge_expired()
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        return True, entry.value

    def set(self, key: str, value: Any) -> None:
        self._purge_expired()
        self._entries.pop(key, None)
        self._entries[key] = _CacheEntry(value=value, expires_at=self._clock() + self._ttl_seconds)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
