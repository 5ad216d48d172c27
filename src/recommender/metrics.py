"""Metrics collection for the recommender module."""

from collections import deque
from dataclasses import dataclass, field
from threading import Lock


# Score samples kept for percentiles; older samples are discarded
MAX_SCORE_SAMPLES = 10_000

_metrics_instance: "RecommendationMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class RecommendationMetrics:
    """Thread-safe metrics for recommendation requests.

    Sources, cache reads and profile fetches record from worker threads,
    so every update holds the instance lock.

    Attributes:
        requests_total: Recommendation requests served.
        requests_by_strategy: Requests per strategy.
        source_failures_by_source: Failed source fetches per source.
        scoring_degraded_total: Quality scores replaced by defaults.
        profile_failures_total: Reader profile fetches that failed.
        pipeline_failures_total: Requests that ended in a failure value.
        cache_hits: Cache hits per logical key name.
        cache_misses: Cache misses per logical key name.
        challenge_insertions_total: Challenge works placed in results.
        lightweight_rankings_total: Rankings that skipped quality scoring.
        score_values: Most recent recommendation scores for percentiles.
        pipeline_duration_ms: Duration of the last pipeline run.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    requests_total: int = 0
    requests_by_strategy: dict[str, int] = field(default_factory=dict)
    source_failures_by_source: dict[str, int] = field(default_factory=dict)
    scoring_degraded_total: int = 0
    profile_failures_total: int = 0
    pipeline_failures_total: int = 0
    cache_hits: dict[str, int] = field(default_factory=dict)
    cache_misses: dict[str, int] = field(default_factory=dict)
    challenge_insertions_total: int = 0
    lightweight_rankings_total: int = 0
    score_values: deque[float] = field(
        default_factory=lambda: deque(maxlen=MAX_SCORE_SAMPLES)
    )
    pipeline_duration_ms: float = 0.0

    @classmethod
    def get_instance(cls) -> "RecommendationMetrics":
        """Get the singleton instance (thread-safe)."""
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_request(self, strategy: str) -> None:
        """Record a served request.

        Args:
            strategy: Strategy used for the request.
        """
        with self._lock:
            self.requests_total += 1
            self.requests_by_strategy[strategy] = (
                self.requests_by_strategy.get(strategy, 0) + 1
            )

    def record_source_failure(self, source_id: str) -> None:
        """Record a failed source fetch.

        Args:
            source_id: Source that failed.
        """
        with self._lock:
            self.source_failures_by_source[source_id] = (
                self.source_failures_by_source.get(source_id, 0) + 1
            )

    def record_scoring_degraded(self, count: int = 1) -> None:
        """Record quality scores replaced by defaults.

        Args:
            count: Number of works affected.
        """
        with self._lock:
            self.scoring_degraded_total += count

    def record_profile_failure(self) -> None:
        """Record a failed reader profile fetch."""
        with self._lock:
            self.profile_failures_total += 1

    def record_pipeline_failure(self) -> None:
        """Record a request that ended in a failure value."""
        with self._lock:
            self.pipeline_failures_total += 1

    def record_cache_hit(self, name: str) -> None:
        """Record a cache hit.

        Args:
            name: Logical cache key name.
        """
        with self._lock:
            self.cache_hits[name] = self.cache_hits.get(name, 0) + 1

    def record_cache_miss(self, name: str) -> None:
        """Record a cache miss.

        Args:
            name: Logical cache key name.
        """
        with self._lock:
            self.cache_misses[name] = self.cache_misses.get(name, 0) + 1

    def record_challenge_insertions(self, count: int) -> None:
        """Record challenge works placed in a result.

        Args:
            count: Number of challenge works.
        """
        with self._lock:
            self.challenge_insertions_total += count

    def record_lightweight_ranking(self) -> None:
        """Record a ranking that skipped quality scoring."""
        with self._lock:
            self.lightweight_rankings_total += 1

    def record_score(self, score: float) -> None:
        """Record a recommendation score for percentile calculation.

        Args:
            score: Score value.
        """
        with self._lock:
            self.score_values.append(score)

    def record_pipeline_duration(self, duration_ms: float) -> None:
        """Record pipeline duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        with self._lock:
            self.pipeline_duration_ms = duration_ms

    def get_score_percentiles(self) -> dict[str, float]:
        """Calculate score percentiles (p50/p90/p99).

        Returns:
            Dictionary with p50, p90, p99 values.
        """
        with self._lock:
            sorted_scores = sorted(self.score_values)
        if not sorted_scores:
            return {"p50": 0.0, "p90": 0.0, "p99": 0.0}

        n = len(sorted_scores)

        def percentile(p: float) -> float:
            idx = int(p * n / 100)
            return sorted_scores[min(idx, n - 1)]

        return {
            "p50": percentile(50),
            "p90": percentile(90),
            "p99": percentile(99),
        }

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        percentiles = self.get_score_percentiles()
        with self._lock:
            return {
                "requests_total": self.requests_total,
                "requests_by_strategy": dict(self.requests_by_strategy),
                "source_failures_by_source": dict(self.source_failures_by_source),
                "scoring_degraded_total": self.scoring_degraded_total,
                "profile_failures_total": self.profile_failures_total,
                "pipeline_failures_total": self.pipeline_failures_total,
                "cache_hits": dict(self.cache_hits),
                "cache_misses": dict(self.cache_misses),
                "challenge_insertions_total": self.challenge_insertions_total,
                "lightweight_rankings_total": self.lightweight_rankings_total,
                "pipeline_duration_ms": self.pipeline_duration_ms,
                "score_percentiles": percentiles,
            }
