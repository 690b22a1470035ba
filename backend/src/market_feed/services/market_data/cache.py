"""
In-memory TTL cache for discovery and candle results.

Single-process and lazy: an expired entry is dropped when it is next read.
Entries are bounded by ``max_entries``; when full, expired entries go
first, then the oldest insertions. Negative results are cached like any
other value (typically ``None`` with a shorter TTL), so callers must use
the ``MISSING`` sentinel to tell a miss from a cached ``None``.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Union

from ...core.logging import get_logger

logger = get_logger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

TTLSpec = Union[float, Callable[[Any], float]]


class CacheEntry:
    """A cached value and its absolute expiry."""

    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, expires_at: float):
        self.value = value
        self.expires_at = expires_at

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheStats:
    """Statistics for a TTL cache."""

    def __init__(self, total_hits: int = 0, total_misses: int = 0, entries_count: int = 0, loads: int = 0):
        self.total_hits = total_hits
        self.total_misses = total_misses
        self.entries_count = entries_count
        self.loads = loads

    @property
    def hit_rate(self) -> float:
        """
        Calculate cache hit rate.

        Returns:
            Hit rate as a fraction (0.0 to 1.0)
        """
        total = self.total_hits + self.total_misses
        if total == 0:
            return 0.0
        return self.total_hits / total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_hits": self.total_hits,
            "total_misses": self.total_misses,
            "hit_rate": self.hit_rate,
            "entries_count": self.entries_count,
            "loads": self.loads,
        }


class TTLCache:
    """In-memory key/value cache with per-entry TTL."""

    def __init__(
        self,
        name: str,
        default_ttl: float = 60.0,
        max_entries: int = 10000,
        coalesce: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            name: Label used in logs
            default_ttl: TTL in seconds when ``set`` is not given one
            max_entries: Upper bound on stored entries
            coalesce: Share one in-flight load between concurrent callers of ``get_or_load``
            clock: Monotonic time source in seconds
        """
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.name = name
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.coalesce = coalesce
        self._clock = clock
        self._cache: Dict[Hashable, CacheEntry] = {}
        self._inflight: Dict[Hashable, "asyncio.Future[Any]"] = {}
        self._total_hits = 0
        self._total_misses = 0
        self._loads = 0

    def get(self, key: Hashable, default: Any = MISSING) -> Any:
        """
        Get a value from the cache.

        Args:
            key: Cache key
            default: Returned when the key is absent or expired

        Returns:
            Cached value or default
        """
        entry = self._cache.get(key)
        if entry is None:
            self._total_misses += 1
            return default

        if entry.is_expired(self._clock()):
            del self._cache[key]
            self._total_misses += 1
            return default

        self._total_hits += 1
        return entry.value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        """
        Set a value in the cache.

        Args:
            key: Cache key
            value: Value to cache; treated as immutable from here on
            ttl: Time to live in seconds (uses default if not specified)
        """
        ttl = self.default_ttl if ttl is None else ttl
        if key not in self._cache and len(self._cache) >= self.max_entries:
            self._make_room()
        self._cache.pop(key, None)
        self._cache[key] = CacheEntry(value, self._clock() + ttl)
        logger.debug(f"[{self.name}] cached {key!r} for {ttl}s")

    def invalidate(self, key: Hashable) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        count = len(self._cache)
        self._cache.clear()
        logger.debug(f"[{self.name}] invalidated all {count} entries")

    def __len__(self) -> int:
        return len(self._cache)

    def cleanup_expired(self) -> int:
        """
        Remove expired entries from the cache.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired_keys = [key for key, entry in self._cache.items() if entry.is_expired(now)]
        for key in expired_keys:
            del self._cache[key]
        return len(expired_keys)

    def get_stats(self) -> CacheStats:
        return CacheStats(
            total_hits=self._total_hits,
            total_misses=self._total_misses,
            entries_count=len(self._cache),
            loads=self._loads,
        )

    async def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Awaitable[Any]],
        ttl: TTLSpec,
    ) -> Any:
        """
        Return the cached value for ``key``, loading and caching it on a miss.

        With coalescing enabled, concurrent misses for the same key await a
        single load. That load is shielded from the callers' cancellation, so
        an abandoned request still completes and fills the cache. A loader
        exception propagates to every waiter and nothing is cached.

        Args:
            key: Cache key
            loader: Coroutine factory producing the value
            ttl: TTL in seconds, or a function of the loaded value returning one
                 (used to give negative results a shorter TTL)

        Returns:
            The cached or freshly loaded value
        """
        cached = self.get(key)
        if cached is not MISSING:
            return cached

        if not self.coalesce:
            return await self._load(key, loader, ttl)

        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._load(key, loader, ttl))
            self._inflight[key] = future
            future.add_done_callback(lambda done: self._load_finished(key, done))
        return await asyncio.shield(future)

    def _load_finished(self, key: Hashable, future: "asyncio.Future[Any]") -> None:
        self._inflight.pop(key, None)
        # retrieve the error even when every waiter was cancelled
        if not future.cancelled() and future.exception() is not None:
            logger.debug(f"[{self.name}] load of {key!r} failed: {future.exception()!r}")

    async def _load(self, key: Hashable, loader: Callable[[], Awaitable[Any]], ttl: TTLSpec) -> Any:
        self._loads += 1
        value = await loader()
        self.set(key, value, ttl(value) if callable(ttl) else ttl)
        return value

    def _make_room(self) -> None:
        if self.cleanup_expired():
            return
        oldest = next(iter(self._cache))
        del self._cache[oldest]
