# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
In-memory LRU cache with optional TTL, and the token-count cache built on it.

Entries are kept in an ``OrderedDict`` ordered by last access, so eviction is
strict least-recently-used. Expired entries are treated as misses and removed
lazily on access; ``cleanup()`` sweeps them explicitly.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its bookkeeping.

    Attributes:
        value: The cached value.
        created_at (float): ``time.monotonic()`` at insertion.
        ttl (Optional[float]): Lifetime in seconds, ``None`` for no expiry.
        last_accessed (float): ``time.monotonic()`` at last hit.
    """

    value: T
    created_at: float
    ttl: Optional[float]
    last_accessed: float

    def expired(self, now: float) -> bool:
        """Whether the entry has outlived its TTL."""
        return self.ttl is not None and now - self.created_at > self.ttl


@dataclass
class CacheStats:
    """Counters describing cache behaviour.

    Attributes:
        entries (int): Live entries (expired ones not yet swept included).
        hits (int): Successful lookups.
        misses (int): Failed or expired lookups.
        evictions (int): Entries dropped to respect ``max_entries``.
    """

    entries: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Share of lookups served from the cache."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class LRUCache(Generic[T]):
    """Thread-safe LRU cache with optional per-entry TTL."""

    def __init__(self, max_entries: int = 1_000, ttl: Optional[float] = None) -> None:
        """Initialize the cache.

        Args:
            max_entries (int): Capacity before least-recently-used eviction.
            ttl (Optional[float]): Default lifetime in seconds; ``None``
                disables expiry.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._ttl = ttl
        self._store: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or *default* on a miss or expiry.

        Args:
            key (str): The cache key to look up.
            default (Any): Value returned when the key is absent.

        Returns:
            Any: The cached value or *default*.
        """
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._stats.misses += 1
                return default
            now = time.monotonic()
            if entry.expired(now):
                del self._store[key]
                self._stats.misses += 1
                return default
            entry.last_accessed = now
            self._store.move_to_end(key)
            self._stats.hits += 1
            return entry.value

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Store a value, evicting least-recently-used entries when full.

        Args:
            key (str): The cache key under which to store the value.
            value (T): The value to cache.
            ttl (Optional[float]): Override of the default lifetime.
        """
        now = time.monotonic()
        with self._lock:
            if key in self._store:
                del self._store[key]
            while len(self._store) >= self._max_entries:
                evicted, _ = self._store.popitem(last=False)
                self._stats.evictions += 1
                logger.debug("Evicted cache entry %s", evicted)
            self._store[key] = CacheEntry(
                value=value,
                created_at=now,
                ttl=self._ttl if ttl is None else ttl,
                last_accessed=now,
            )

    def invalidate(self, key: str) -> bool:
        """Remove a single entry.

        Returns:
            bool: ``True`` if the key was present.
        """
        with self._lock:
            return self._store.pop(key, None) is not None

    def cleanup(self) -> int:
        """Remove all expired entries.

        Returns:
            int: Number of entries removed.
        """
        now = time.monotonic()
        with self._lock:
            expired = [k for k, e in self._store.items() if e.expired(now)]
            for k in expired:
                del self._store[k]
        return len(expired)

    def clear(self) -> None:
        """Clear all cached entries and counters."""
        with self._lock:
            self._store.clear()
            self._stats = CacheStats()

    def values(self) -> list:
        """Snapshot of live values in LRU order."""
        now = time.monotonic()
        with self._lock:
            return [e.value for e in self._store.values() if not e.expired(now)]

    def items(self) -> list:
        """Snapshot of live ``(key, value)`` pairs in LRU order."""
        now = time.monotonic()
        with self._lock:
            return [(k, e.value) for k, e in self._store.items() if not e.expired(now)]

    @property
    def stats(self) -> CacheStats:
        """Copy of the current counters."""
        with self._lock:
            return CacheStats(
                entries=len(self._store),
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
            )

    def __len__(self) -> int:
        return len(self._store)


def make_token_cache_key(content: str, model: str) -> str:
    """Content-addressed key: short hash, length and model id.

    Args:
        content (str): Text whose token count is cached.
        model (str): Model (tokenizer) identifier.

    Returns:
        str: Key of the form ``"<model>:<length>:<hash16>"``.
    """
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
    return f"{model}:{len(content)}:{digest}"


class TokenCountingCache:
    """Maps ``(content, model)`` to a previously computed token count."""

    def __init__(self, max_entries: int = 10_000, ttl: float = 3600.0) -> None:
        """Initialize the token cache.

        Args:
            max_entries (int): Capacity before LRU eviction.
            ttl (float): Lifetime of a cached count in seconds.
        """
        self._cache: LRUCache[int] = LRUCache(max_entries=max_entries, ttl=ttl)

    def get(self, content: str, model: str) -> Optional[int]:
        """Cached token count, or ``None`` on a miss."""
        return self._cache.get(make_token_cache_key(content, model))

    def set(self, content: str, model: str, count: int) -> None:
        """Store a token count for ``(content, model)``."""
        if count < 0:
            raise ValueError(f"token count must be non-negative, got {count}")
        self._cache.set(make_token_cache_key(content, model), count)

    async def get_or_compute(
        self,
        content: str,
        model: str,
        compute: Callable[[], Awaitable[int]],
    ) -> int:
        """Return the cached count or compute, store and return it.

        Errors raised by *compute* propagate; nothing is cached for them.

        Args:
            content (str): Text to count.
            model (str): Model (tokenizer) identifier.
            compute (Callable[[], Awaitable[int]]): Counting coroutine factory.

        Returns:
            int: The token count.
        """
        cached = self.get(content, model)
        if cached is not None:
            return cached
        count = await compute()
        self.set(content, model, count)
        return count

    def invalidate(self, content: str, model: str) -> bool:
        """Drop the cached count for ``(content, model)``."""
        return self._cache.invalidate(make_token_cache_key(content, model))

    def cleanup(self) -> int:
        """Sweep expired counts. Returns the number removed."""
        return self._cache.cleanup()

    def clear(self) -> None:
        """Drop every cached count."""
        self._cache.clear()

    @property
    def stats(self) -> CacheStats:
        """Hit/miss/eviction counters."""
        return self._cache.stats

    def __len__(self) -> int:
        return len(self._cache)


def summarize_stats(stats: CacheStats) -> Dict[str, Any]:
    """Flatten cache stats for logging."""
    return {
        "entries": stats.entries,
        "hits": stats.hits,
        "misses": stats.misses,
        "evictions": stats.evictions,
        "hit_rate": round(stats.hit_rate, 3),
    }
