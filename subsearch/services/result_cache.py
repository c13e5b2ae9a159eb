"""In-process TTL + LRU cache for search results.

Bounded by entry count and by an estimated byte size. Every operation takes
one ``threading.Lock``; a daemon janitor thread sweeps expired entries on a
fixed interval until ``close()`` is called.
"""
from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from subsearch.models.search import SearchResult

EvictCallback = Callable[[str, Any], None]

# Rough per-object overhead added on top of string payload sizes.
RESULT_OVERHEAD_BYTES = 200
DEFAULT_OVERHEAD_BYTES = 64


@dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float
    size: int


def cache_key(query: str, mode: str, limit: int) -> str:
    """Normalized signature of a search request."""
    normalized = " ".join((query or "").lower().split())
    raw = f"search:{normalized}:{str(mode).lower()}:{limit}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def estimate_size(value: Any) -> int:
    if isinstance(value, SearchResult):
        text = (
            len(value.id)
            + len(value.title)
            + len(value.subreddit)
            + len(value.author)
            + len(value.content)
            + len(value.url)
            + sum(len(h) for h in value.highlights)
        )
        return RESULT_OVERHEAD_BYTES + text
    if isinstance(value, str):
        return DEFAULT_OVERHEAD_BYTES + len(value.encode("utf-8"))
    if isinstance(value, bytes):
        return DEFAULT_OVERHEAD_BYTES + len(value)
    if isinstance(value, dict):
        return DEFAULT_OVERHEAD_BYTES + sum(
            estimate_size(k) + estimate_size(v) for k, v in value.items()
        )
    if isinstance(value, (list, tuple, set, frozenset)):
        return DEFAULT_OVERHEAD_BYTES + sum(estimate_size(item) for item in value)
    return DEFAULT_OVERHEAD_BYTES


class ResultCache:
    def __init__(
        self,
        *,
        max_items: int = 1000,
        max_size_bytes: int = 50 * 1024 * 1024,
        default_ttl: float = 900.0,
        cleanup_interval: float | None = 60.0,
        on_evict: EvictCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_items < 1:
            raise ValueError("max_items must be positive")
        self.max_items = max_items
        self.max_size_bytes = max_size_bytes
        self.default_ttl = default_ttl
        self._on_evict = on_evict
        self._clock = clock

        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._size = 0
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

        self._stop = threading.Event()
        self._janitor: threading.Thread | None = None
        if cleanup_interval and cleanup_interval > 0:
            self._janitor = threading.Thread(
                target=self._run_janitor,
                args=(cleanup_interval,),
                name="result-cache-janitor",
                daemon=True,
            )
            self._janitor.start()

    def get(self, key: str) -> tuple[Any, bool]:
        evicted: list[CacheEntry] = []
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None, False
            if self._clock() >= entry.expires_at:
                evicted.append(self._remove(key))
                self._misses += 1
                found = False
            else:
                self._entries.move_to_end(key)
                self._hits += 1
                found = True
        self._notify(evicted)
        if found:
            return entry.value, True
        return None, False

    def set(self, key: str, value: Any) -> bool:
        return self.set_with_ttl(key, value, self.default_ttl)

    def set_with_ttl(self, key: str, value: Any, ttl: float) -> bool:
        """Insert or replace ``key``. Returns False when the value cannot fit at all."""
        size = estimate_size(value)
        if size > self.max_size_bytes:
            logger.debug(f"Not caching {key[:12]}: {size} bytes exceeds cache bound")
            return False

        evicted: list[CacheEntry] = []
        with self._lock:
            if key in self._entries:
                evicted.append(self._remove(key))

            while self._entries and (
                len(self._entries) >= self.max_items
                or self._size + size > self.max_size_bytes
            ):
                oldest = next(iter(self._entries))
                evicted.append(self._remove(oldest))
                self._evictions += 1

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                expires_at=self._clock() + ttl,
                size=size,
            )
            self._size += size
        self._notify(evicted)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            removed = self._remove(key)
        self._notify([removed])
        return True

    def clear(self) -> None:
        with self._lock:
            removed = list(self._entries.values())
            self._entries.clear()
            self._size = 0
        self._notify(removed)

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
            removed = [self._remove(key) for key in expired]
        self._notify(removed)
        if removed:
            logger.debug(f"Result cache sweep removed {len(removed)} expired entries")
        return len(removed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def size_bytes(self) -> int:
        with self._lock:
            return self._size

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "items": len(self._entries),
                "size_bytes": self._size,
                "max_items": self.max_items,
                "max_size_bytes": self.max_size_bytes,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def close(self) -> None:
        """Stop the janitor thread. Safe to call more than once."""
        self._stop.set()
        if self._janitor is not None and self._janitor is not threading.current_thread():
            self._janitor.join(timeout=5)
        self._janitor = None

    @property
    def janitor_running(self) -> bool:
        return self._janitor is not None and self._janitor.is_alive()

    def _remove(self, key: str) -> CacheEntry:
        entry = self._entries.pop(key)
        self._size -= entry.size
        return entry

    def _notify(self, entries: list[CacheEntry]) -> None:
        # Runs outside the lock so callbacks may touch the cache.
        if self._on_evict is None:
            return
        for entry in entries:
            self._on_evict(entry.key, entry.value)

    def _run_janitor(self, interval: float) -> None:
        while not self._stop.wait(interval):
            self.cleanup_expired()
