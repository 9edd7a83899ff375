"""TTL caches for index query results and filter options."""

from __future__ import annotations

from typing import TypeAlias

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from taskq.model import FilterOptions


logger = logging.getLogger("taskq")

Clock: TypeAlias = Callable[[], float]
IndexCacheKey: TypeAlias = tuple[str, str, str]

INDEX_CACHE_TTL_SECONDS = 30.0
FILTER_OPTIONS_TTL_SECONDS = 300.0
FILTER_OPTIONS_MIN_INVALIDATION_AGE_SECONDS = 30.0


@dataclass(frozen=True)
class IndexCacheStats:
    """Index query cache snapshot."""

    entry_count: int
    cache_keys: list[IndexCacheKey]
    timeout_seconds: float


@dataclass(frozen=True)
class FilterOptionsCacheStats:
    """Filter options cache snapshot."""

    hits: int
    computes: int
    hit_rate: float
    is_cached: bool
    age_seconds: float | None
    ttl_remaining_seconds: float | None


class IndexQueryCache:
    """Path sets keyed by ``(property, operator, value)`` with lazy expiry.

    Stored and returned sets are copies, so callers may mutate them freely.
    """

    def __init__(
        self,
        ttl_seconds: float = INDEX_CACHE_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[IndexCacheKey, tuple[float, set[str]]] = {}
        self._lock = threading.Lock()

    def get(self, key: IndexCacheKey) -> set[str] | None:
        """Return a copy of a live entry, dropping it when expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, paths = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return set(paths)

    def put(self, key: IndexCacheKey, paths: set[str]) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), set(paths))

    def get_or_compute(self, key: IndexCacheKey, compute: Callable[[], set[str]]) -> set[str]:
        """Return the cached path set for key, computing and storing it on a miss."""
        cached = self.get(key)
        if cached is not None:
            logger.debug("Index cache hit for %s", key)
            return cached
        paths = compute()
        self.put(key, paths)
        return set(paths)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> IndexCacheStats:
        with self._lock:
            return IndexCacheStats(
                entry_count=len(self._entries),
                cache_keys=list(self._entries),
                timeout_seconds=self.ttl_seconds,
            )


class FilterOptionsCache:
    """Single filter options snapshot with TTL and hit accounting."""

    def __init__(
        self,
        ttl_seconds: float = FILTER_OPTIONS_TTL_SECONDS,
        min_invalidation_age_seconds: float = FILTER_OPTIONS_MIN_INVALIDATION_AGE_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.min_invalidation_age_seconds = min_invalidation_age_seconds
        self._clock = clock
        self._options: FilterOptions | None = None
        self._stored_at = 0.0
        self._hits = 0
        self._computes = 0
        self._lock = threading.Lock()

    def get_or_compute(self, compute: Callable[[], FilterOptions]) -> FilterOptions:
        """Return the live snapshot or build a fresh one."""
        with self._lock:
            now = self._clock()
            if self._options is not None and now - self._stored_at < self.ttl_seconds:
                self._hits += 1
                return self._options
            options = compute()
            self._options = options
            self._stored_at = now
            self._computes += 1
            logger.debug("Filter options recomputed")
            return options

    def check_and_invalidate(self) -> bool:
        """Drop the snapshot only when it is older than the minimum age.

        Returns:
            Whether the snapshot was dropped
        """
        with self._lock:
            if self._options is None:
                return False
            if self._clock() - self._stored_at <= self.min_invalidation_age_seconds:
                return False
            self._options = None
            return True

    def invalidate(self) -> None:
        with self._lock:
            self._options = None

    def stats(self) -> FilterOptionsCacheStats:
        with self._lock:
            total = self._hits + self._computes
            cached = self._options is not None
            age = self._clock() - self._stored_at if cached else None
            return FilterOptionsCacheStats(
                hits=self._hits,
                computes=self._computes,
                hit_rate=self._hits / total if total else 0.0,
                is_cached=cached,
                age_seconds=age,
                ttl_remaining_seconds=max(self.ttl_seconds - age, 0.0) if age is not None else None,
            )
