"""Bounded in-memory cache for beautified file content."""

from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..logging import get_logger
from ..models import CacheEntry

DEFAULT_MAX_ENTRIES = 100


@dataclass(frozen=True)
class CacheStats:
    entries: int
    total_bytes: int
    max_entries: int


@dataclass(frozen=True)
class EvictionReport:
    total: int
    removed: int
    remaining: int


class TransformCache:
    """Recency-ordered cache keyed by source path.

    Entries are kept oldest-first; a write appends and a hit moves the entry to
    the back. Every operation holds the same lock, so monitor-triggered
    evictions never interleave with in-flight puts.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        clock: Callable[[], float] = time.monotonic,
        refresh_on_hit: bool = True,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.refresh_on_hit = refresh_on_hit
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._active = False
        self.logger = get_logger("cache")

    # ------------------------------------------------------------------
    # Lifecycle

    def init(self) -> "TransformCache":
        with self._lock:
            self._entries.clear()
            self._active = True
        return self

    def shutdown(self) -> None:
        with self._lock:
            self._entries.clear()
            self._active = False

    @property
    def active(self) -> bool:
        return self._active

    # ------------------------------------------------------------------
    # Operations

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self.refresh_on_hit:
                entry.last_access = self._clock()
                self._entries.move_to_end(key)
            return entry.content

    def put(self, key: str, content: str) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                self.evict_oldest()
            self._entries[key] = CacheEntry(
                key=key,
                content=content,
                size=len(content),
                last_access=self._clock(),
            )

    def evict_oldest(self) -> Optional[str]:
        with self._lock:
            if not self._entries:
                return None
            key, _ = self._entries.popitem(last=False)
            return key

    def evict_percentage(self, percentage: float) -> EvictionReport:
        """Remove ``ceil(entries * percentage / 100)`` oldest entries."""
        percentage = min(max(float(percentage), 0.0), 100.0)
        with self._lock:
            total = len(self._entries)
            if total == 0:
                return EvictionReport(total=0, removed=0, remaining=0)
            to_remove = min(total, math.ceil(total * percentage / 100))
            for _ in range(to_remove):
                self._entries.popitem(last=False)
            remaining = len(self._entries)
        if to_remove:
            self.logger.debug(
                "Evicted %d of %d cached transforms (%.0f%%)", to_remove, total, percentage
            )
        return EvictionReport(total=total, removed=to_remove, remaining=remaining)

    def clear_all(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            total_bytes = sum(entry.size for entry in self._entries.values())
            return CacheStats(
                entries=len(self._entries),
                total_bytes=total_bytes,
                max_entries=self.max_entries,
            )

    def keys(self) -> List[str]:
        """Return keys oldest-first."""
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_default_cache: Optional[TransformCache] = None
_default_lock = threading.Lock()


def default_cache(max_entries: int | None = None) -> TransformCache:
    """Return the process-wide cache; ``max_entries`` only applies on first use."""
    global _default_cache
    with _default_lock:
        if _default_cache is None:
            _default_cache = TransformCache(max_entries or DEFAULT_MAX_ENTRIES).init()
        return _default_cache


__all__ = ["CacheStats", "EvictionReport", "TransformCache", "default_cache"]
