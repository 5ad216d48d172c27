"""TTL cache for whole recommendation results and shared source queries.

Encapsulates cache storage and the read-through helper used by the
aggregator, the quality engine and the service.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from src.recommender.metrics import RecommendationMetrics
from src.recommender.protocols import RecommendationCache


logger = structlog.get_logger()

T = TypeVar("T")

# Seconds between sweeps of expired entries on write
SWEEP_INTERVAL_SECONDS = 60.0


@dataclass(frozen=True)
class _CacheEntry:
    value: object
    expires_at: float


class InMemoryTTLCache:
    """Process-local cache with per-entry expiry.

    Values are stored as given; callers store immutable values (tuples of
    frozen models) so a hit can be shared between requests safely.
    Safe to share between source worker threads. Writes drop every expired entry at most once per
    ``sweep_interval``, so keys that are never read again still go away.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the cache.

        Args:
            clock: Monotonic clock in seconds; injectable for tests.
            sweep_interval: Minimum seconds between expiry sweeps.
        """
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> object | None:
        """Return the cached value, or None when absent or expired.

        Args:
            key: Cache key.

        Returns:
            Cached value or None.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: object, ttl: float) -> None:
        """Store a value for ``ttl`` seconds, replacing any previous entry.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Time to live in seconds; zero or less disables caching.
        """
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            if ttl <= 0:
                self._entries.pop(key, None)
                return
            self._entries[key] = _CacheEntry(value=value, expires_at=now + ttl)

    def invalidate(self, key: str) -> None:
        """Drop a single entry."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def _sweep(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self._sweep_interval
        if expired:
            logger.debug("cache_swept", component="cache", evicted=len(expired))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def cache_key(name: str, **params: object) -> str:
    """Build a cache key from a logical name and its parameters.

    Args:
        name: Logical cache name (e.g. 'popular-works').
        **params: Parameters that change the cached value.

    Returns:
        Deterministic key string.
    """
    if not params:
        return name
    parts = [f"{k}={params[k]}" for k in sorted(params)]
    return f"{name}:" + ":".join(parts)


def read_through(
    cache: RecommendationCache,
    name: str,
    key: str,
    ttl: float,
    loader: Callable[[], T],
    metrics: RecommendationMetrics | None = None,
) -> T:
    """Return the cached value for ``key`` or compute, store and return it.

    Loader exceptions propagate and nothing is cached.

    Args:
        cache: Cache backend.
        name: Logical cache name for metrics and logs.
        key: Full cache key.
        ttl: Time to live in seconds.
        loader: Computes the value on a miss.
        metrics: Optional metrics instance.

    Returns:
        Cached or freshly computed value.
    """
    metrics = metrics or RecommendationMetrics.get_instance()
    cached = cache.get(key)
    if cached is not None:
        metrics.record_cache_hit(name)
        logger.debug("cache_hit", component="cache", cache_key=key)
        return cached  # type: ignore[return-value]

    metrics.record_cache_miss(name)
    value = loader()
    cache.set(key, value, ttl)
    logger.debug("cache_store", component="cache", cache_key=key, ttl=ttl)
    return value
