# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Bounded LRU cache with per-entry expiry.

Backs ``CachingCapabilityResolver`` so repeated root dereferences do not
hit the underlying store or network on every verification.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


def get_cache_max_size() -> int:
    """Get the configured cache max size from config."""
    from .config import get_config

    return get_config().cache_max_size


class LRUCache(Generic[K, V]):
    """A mapping with LRU eviction and optional time-to-live.

    When the cache exceeds max_size, the least recently accessed entries
    are evicted. Entries older than ``ttl_seconds`` are treated as absent
    and dropped on access.

    Thread-safe for concurrent access.

    Example:
        cache = LRUCache(max_size=100, ttl_seconds=60)
        cache.put("urn:zcap:root", capability)
        cache.get("urn:zcap:root")  # capability, now most recently used
    """

    def __init__(
        self,
        max_size: int | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            max_size: Maximum number of entries. If None, uses ZCAPLD_CACHE_MAX_SIZE.
            ttl_seconds: Entry lifetime in seconds. None keeps entries until evicted.
            clock: Monotonic time source, injectable for tests.
        """
        self._max_size = max_size if max_size is not None else get_cache_max_size()
        if self._max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[K, tuple[V, float]] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def max_size(self) -> int:
        """Maximum cache size."""
        return self._max_size

    def get(self, key: K, default: V | None = None) -> V | None:
        """Get a live entry and mark it as recently used."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return default
            value, stored_at = entry
            if self._ttl is not None and self._clock() - stored_at >= self._ttl:
                del self._entries[key]
                self._misses += 1
                return default
            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def put(self, key: K, value: V) -> None:
        """Store an entry, evicting the oldest ones if over max size."""
        with self._lock:
            self._entries[key] = (value, self._clock())
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)
                self._evictions += 1

    def invalidate(self, key: K) -> bool:
        """Drop an entry. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Clear all entries."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self._max_size,
                "utilization": len(self._entries) / self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
