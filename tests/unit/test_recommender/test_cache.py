"""Unit tests for the TTL cache and read-through helper."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.recommender.cache import InMemoryTTLCache, cache_key, read_through
from src.recommender.metrics import RecommendationMetrics
from src.recommender.protocols import RecommendationCache


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestInMemoryTTLCache:
    """Tests for entry storage and expiry."""

    def test_satisfies_protocol(self) -> None:
        """The cache implements RecommendationCache."""
        assert isinstance(InMemoryTTLCache(), RecommendationCache)

    def test_get_before_expiry(self) -> None:
        """Stored values are returned until the TTL elapses."""
        clock = _FakeClock()
        cache = InMemoryTTLCache(clock=clock)
        cache.set("k", ("v",), ttl=60)

        clock.now += 59
        assert cache.get("k") == ("v",)

    def test_expired_entry_evicted(self) -> None:
        """Expired entries read as missing and are dropped."""
        clock = _FakeClock()
        cache = InMemoryTTLCache(clock=clock)
        cache.set("k", "v", ttl=60)

        clock.now += 60
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_set_is_upsert(self) -> None:
        """A second write replaces the first."""
        cache = InMemoryTTLCache()
        cache.set("k", "first", ttl=60)
        cache.set("k", "second", ttl=60)

        assert cache.get("k") == "second"

    def test_zero_ttl_not_stored(self) -> None:
        """A non-positive TTL disables caching for the key."""
        cache = InMemoryTTLCache()
        cache.set("k", "v", ttl=0)

        assert cache.get("k") is None

    def test_invalidate_and_clear(self) -> None:
        """Entries can be dropped singly or all at once."""
        cache = InMemoryTTLCache()
        cache.set("a", 1, ttl=60)
        cache.set("b", 2, ttl=60)

        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.clear()
        assert len(cache) == 0


    def test_expired_keys_swept_on_write(self) -> None:
        """Keys never read again are dropped once they expire."""
        clock = _FakeClock()
        cache = InMemoryTTLCache(clock=clock)
        metrics = RecommendationMetrics()
        for i in range(500):
            read_through(cache, "quality-scores", f"q:{i}", 3600, tuple, metrics)
        assert len(cache) == 500

        clock.now += 10_000
        read_through(cache, "quality-scores", "q:fresh", 3600, tuple, metrics)

        assert len(cache) == 1
        assert cache.get("q:fresh") == ()

    def test_sweep_keeps_live_entries(self) -> None:
        """A sweep drops only entries past their own TTL."""
        clock = _FakeClock()
        cache = InMemoryTTLCache(clock=clock, sweep_interval=60)
        cache.set("short", "s", ttl=30)
        cache.set("long", "l", ttl=3600)

        clock.now += 120
        cache.set("new", "n", ttl=30)

        assert len(cache) == 2
        assert cache.get("long") == "l"

    def test_sweep_waits_for_interval(self) -> None:
        """Expired entries linger until the sweep interval has passed."""
        clock = _FakeClock()
        cache = InMemoryTTLCache(clock=clock, sweep_interval=60)
        cache.set("short", "s", ttl=10)

        clock.now += 30
        cache.set("other", "o", ttl=600)
        assert len(cache) == 2

        clock.now += 31
        cache.set("third", "t", ttl=600)
        assert len(cache) == 2
        assert cache.get("short") is None

    def test_concurrent_writes(self) -> None:
        """Writers on several threads all land in the cache."""
        cache = InMemoryTTLCache()

        def write(worker: int) -> None:
            for i in range(1_000):
                cache.set(f"{worker}:{i}", i, ttl=60)

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(write, range(8)))

        assert len(cache) == 8_000


class TestCacheKey:
    """Tests for cache key construction."""

    def test_name_only(self) -> None:
        """Keys without parameters are the bare name."""
        assert cache_key("guest-recommendations") == "guest-recommendations"

    def test_parameters_sorted(self) -> None:
        """Parameter order does not change the key."""
        assert cache_key("popular-works", limit=30, region="jp") == cache_key(
            "popular-works", region="jp", limit=30
        )
        assert cache_key("popular-works", limit=30) == "popular-works:limit=30"


class TestReadThrough:
    """Tests for the read-through helper."""

    def test_miss_then_hit(self) -> None:
        """The loader runs once; later reads hit the cache."""
        cache = InMemoryTTLCache()
        metrics = RecommendationMetrics()
        calls: list[int] = []

        def loader() -> tuple[int, ...]:
            calls.append(1)
            return (1, 2, 3)

        first = read_through(cache, "popular-works", "k", 60, loader, metrics)
        second = read_through(cache, "popular-works", "k", 60, loader, metrics)

        assert first == second == (1, 2, 3)
        assert len(calls) == 1
        assert metrics.cache_misses == {"popular-works": 1}
        assert metrics.cache_hits == {"popular-works": 1}

    def test_loader_error_not_cached(self) -> None:
        """Loader exceptions propagate and leave the key empty."""
        cache = InMemoryTTLCache()

        def loader() -> tuple[int, ...]:
            raise RuntimeError("source down")

        with pytest.raises(RuntimeError, match="source down"):
            read_through(cache, "popular-works", "k", 60, loader, RecommendationMetrics())

        assert cache.get("k") is None
