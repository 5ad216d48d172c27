"""Unit tests for recommendation metrics."""

from concurrent.futures import ThreadPoolExecutor

from src.recommender.metrics import MAX_SCORE_SAMPLES, RecommendationMetrics


class TestRecommendationMetrics:
    """Tests for metric recording."""

    def test_singleton_and_reset(self) -> None:
        """get_instance returns one shared instance until reset."""
        RecommendationMetrics.reset()
        first = RecommendationMetrics.get_instance()

        assert RecommendationMetrics.get_instance() is first

        RecommendationMetrics.reset()
        assert RecommendationMetrics.get_instance() is not first

    def test_counters(self) -> None:
        """Counters accumulate per key."""
        metrics = RecommendationMetrics()

        metrics.record_request("popular")
        metrics.record_request("popular")
        metrics.record_request("adaptive")
        metrics.record_source_failure("category_tag")
        metrics.record_scoring_degraded(3)
        metrics.record_cache_hit("popular-works")
        metrics.record_cache_miss("popular-works")
        metrics.record_challenge_insertions(15)

        assert metrics.requests_total == 3
        assert metrics.requests_by_strategy == {"popular": 2, "adaptive": 1}
        assert metrics.source_failures_by_source == {"category_tag": 1}
        assert metrics.scoring_degraded_total == 3
        assert metrics.cache_hits == {"popular-works": 1}
        assert metrics.cache_misses == {"popular-works": 1}
        assert metrics.challenge_insertions_total == 15

    def test_score_percentiles(self) -> None:
        """Percentiles come from recorded scores."""
        metrics = RecommendationMetrics()
        for score in range(100):
            metrics.record_score(score / 10)

        percentiles = metrics.get_score_percentiles()

        assert percentiles == {"p50": 5.0, "p90": 9.0, "p99": 9.9}

    def test_score_samples_capped(self) -> None:
        """Only the most recent scores are kept."""
        metrics = RecommendationMetrics()
        for _ in range(MAX_SCORE_SAMPLES + 50):
            metrics.record_score(1.0)
        metrics.record_score(9.0)

        assert len(metrics.score_values) == MAX_SCORE_SAMPLES
        assert metrics.score_values[-1] == 9.0

    def test_concurrent_updates_not_lost(self) -> None:
        """Counters recorded from worker threads add up exactly."""
        metrics = RecommendationMetrics()
        workers, per_worker = 8, 5_000

        def record() -> None:
            for _ in range(per_worker):
                metrics.record_cache_miss("popular-works")
                metrics.record_source_failure("category_tag")
                metrics.record_profile_failure()

        with ThreadPoolExecutor(max_workers=workers) as executor:
            for future in [executor.submit(record) for _ in range(workers)]:
                future.result()

        expected = workers * per_worker
        assert metrics.cache_misses == {"popular-works": expected}
        assert metrics.source_failures_by_source == {"category_tag": expected}
        assert metrics.profile_failures_total == expected

    def test_concurrent_get_instance_is_shared(self) -> None:
        """Threads racing on first access get the same instance."""
        RecommendationMetrics.reset()

        with ThreadPoolExecutor(max_workers=8) as executor:
            instances = list(
                executor.map(lambda _: RecommendationMetrics.get_instance(), range(32))
            )

        assert all(instance is instances[0] for instance in instances)
        RecommendationMetrics.reset()

    def test_empty_percentiles(self) -> None:
        """No scores yields zeros."""
        assert RecommendationMetrics().get_score_percentiles() == {
            "p50": 0.0,
            "p90": 0.0,
            "p99": 0.0,
        }

    def test_to_dict(self) -> None:
        """Serialization includes counters and percentiles."""
        metrics = RecommendationMetrics()
        metrics.record_pipeline_failure()
        metrics.record_pipeline_duration(12.5)

        data = metrics.to_dict()

        assert data["pipeline_failures_total"] == 1
        assert data["pipeline_duration_ms"] == 12.5
        assert "score_percentiles" in data
