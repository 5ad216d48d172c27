"""Unit tests for the quality score engine."""

from unittest.mock import MagicMock

import pytest

from src.config.schemas.recommender import QualityConfig
from src.recommender.cache import InMemoryTTLCache
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import ContentAttributes, WorkCandidate
from src.recommender.quality import (
    DEFAULT_QUALITY_COMPONENTS,
    QualityScoreEngine,
    calculate_content_quality_score,
    calculate_ctr_score,
    calculate_engagement_score,
    constant_consistency,
)
from tests.helpers.factories import make_ctr_stats, make_repository, make_work


def _make_engine(
    repository: MagicMock | None = None,
    metrics: RecommendationMetrics | None = None,
    **kwargs: object,
) -> QualityScoreEngine:
    return QualityScoreEngine(
        repository or make_repository(),
        metrics=metrics or RecommendationMetrics(),
        **kwargs,  # type: ignore[arg-type]
    )


class TestCtrScore:
    """Tests for the log-scaled CTR curve."""

    def test_zero_ctr_scores_zero(self) -> None:
        """No clicks earns nothing."""
        assert calculate_ctr_score(0.0) == 0.0

    def test_saturates_at_fifteen_percent(self) -> None:
        """15% and above earn the full 10."""
        assert calculate_ctr_score(0.15) == 10.0
        assert calculate_ctr_score(0.2) == 10.0

    def test_five_percent_strictly_between(self) -> None:
        """5% lands strictly inside the range."""
        score = calculate_ctr_score(0.05)
        assert 0.0 < score < 10.0
        assert score == pytest.approx(6.46, abs=0.01)

    def test_monotonic(self) -> None:
        """Higher CTR never scores lower."""
        values = [calculate_ctr_score(c) for c in (0.001, 0.01, 0.05, 0.1, 0.149)]
        assert values == sorted(values)


class TestEngagementScore:
    """Tests for the engagement tiers."""

    def test_top_tiers_sum_to_ten(self) -> None:
        """Long, fully visible, widely shown cards earn 10."""
        assert calculate_engagement_score(5000, 0.9, 1000) == 10.0

    def test_bottom_tiers(self) -> None:
        """Short, barely visible, rarely shown cards earn the floor of each tier."""
        assert calculate_engagement_score(0, 0.1, 0) == 2.0

    def test_middle_tiers(self) -> None:
        """Middle tiers add up."""
        assert calculate_engagement_score(3000, 0.8, 100) == 7.5


class TestContentQualityScore:
    """Tests for content attribute scoring."""

    def test_empty_content(self) -> None:
        """Tiny body and no image earn the minimum."""
        assert calculate_content_quality_score(ContentAttributes()) == pytest.approx(1.1)

    def test_full_content(self) -> None:
        """Long body, image, good title and description earn 10."""
        attributes = ContentAttributes(
            content_length=2500,
            has_image=True,
            title_length=20,
            description_length=40,
        )
        assert calculate_content_quality_score(attributes) == 10.0

    def test_long_title_earns_partial_credit(self) -> None:
        """Titles outside 10-50 characters earn 0.5."""
        short = calculate_content_quality_score(ContentAttributes(title_length=5))
        good = calculate_content_quality_score(ContentAttributes(title_length=30))
        assert good - short == pytest.approx(1.0)


class TestScoreComponents:
    """Tests for single-work scoring."""

    def test_without_telemetry_only_content_and_consistency_count(self) -> None:
        """Missing CTR stats contribute zero without reweighting."""
        engine = _make_engine()
        work = make_work(title="A title of fair length")

        components = engine.score_components(work, None)

        assert components.ctr_score == 0.0
        assert components.engagement_score == 0.0
        assert components.content_quality_score == pytest.approx(2.6)
        assert components.consistency_score == 5.0
        assert components.overall_quality_score == pytest.approx(1.02)

    def test_below_min_impressions_ignores_telemetry(self) -> None:
        """Telemetry with too few impressions is ignored."""
        engine = _make_engine()
        work = make_work()

        components = engine.score_components(
            work, make_ctr_stats(work.work_id, impressions=10, ctr=0.2)
        )

        assert components.ctr_score == 0.0
        assert components.engagement_score == 0.0

    def test_reliable_telemetry_raises_score(self) -> None:
        """Works with good CTR outscore identical works without it."""
        engine = _make_engine()
        work = make_work()

        without = engine.score_components(work, None)
        with_stats = engine.score_components(work, make_ctr_stats(work.work_id))

        assert with_stats.ctr_score > 0
        assert with_stats.engagement_score == 7.5
        assert with_stats.overall_quality_score > without.overall_quality_score

    def test_scoring_is_idempotent(self) -> None:
        """Same inputs always produce the same components."""
        engine = _make_engine()
        work = make_work(content_length=800, image_url="https://img/1.png")
        stats = make_ctr_stats(work.work_id)

        assert engine.score_components(work, stats) == engine.score_components(
            work, stats
        )

    def test_overall_within_bounds(self) -> None:
        """Maximum inputs never exceed 10."""
        engine = _make_engine()
        work = make_work(
            content_length=5000,
            image_url="https://img/1.png",
            description="A description long enough to count",
        )
        stats = make_ctr_stats(
            work.work_id, impressions=5000, ctr=0.5, duration_ms=9000, ratio=1.0
        )

        components = engine.score_components(work, stats)

        assert 0.0 <= components.overall_quality_score <= 10.0

    def test_custom_consistency_scorer(self) -> None:
        """Consistency comes from the injected scorer, clamped to 10."""
        engine = _make_engine(consistency_scorer=constant_consistency(42.0))

        components = engine.score_components(make_work(), None)

        assert components.consistency_score == 10.0


class TestScoreBatch:
    """Tests for batch scoring."""

    def test_empty_batch(self) -> None:
        """Empty input returns an empty mapping without fetching telemetry."""
        repo = make_repository()
        engine = _make_engine(repo)

        assert engine.score_batch([]) == {}
        repo.fetch_ctr_stats.assert_not_called()

    def test_every_work_scored(self) -> None:
        """Each input id is present in the result."""
        works = [make_work(f"w{i}") for i in range(5)]
        repo = make_repository(fetch_ctr_stats={"w1": make_ctr_stats("w1")})
        engine = _make_engine(repo)

        result = engine.score_batch(works)

        assert set(result) == {w.work_id for w in works}
        assert result["w1"].ctr_score > 0
        assert result["w0"].ctr_score == 0.0

    def test_one_failing_work_gets_defaults(self) -> None:
        """A work whose scoring raises gets the default components."""

        def scorer(work: WorkCandidate) -> float:
            if work.work_id == "bad":
                raise RuntimeError("boom")
            return 5.0

        metrics = RecommendationMetrics()
        engine = _make_engine(metrics=metrics, consistency_scorer=scorer)

        result = engine.score_batch([make_work("good"), make_work("bad")])

        assert result["bad"] == DEFAULT_QUALITY_COMPONENTS
        assert result["bad"].overall_quality_score == 3.0
        assert result["good"] != DEFAULT_QUALITY_COMPONENTS
        assert metrics.scoring_degraded_total == 1

    def test_telemetry_failure_scores_without_telemetry(self) -> None:
        """A failing CTR fetch degrades to content-only scoring."""
        repo = make_repository()
        repo.fetch_ctr_stats.side_effect = RuntimeError("db down")
        engine = _make_engine(repo)

        result = engine.score_batch([make_work("w1")])

        assert result["w1"].ctr_score == 0.0
        assert result["w1"].content_quality_score > 0

    def test_cached_batch_skips_second_fetch(self) -> None:
        """The same work set is served from the cache."""
        repo = make_repository()
        cache = InMemoryTTLCache()
        metrics = RecommendationMetrics()
        engine = _make_engine(repo, metrics=metrics, cache=cache)
        works = [make_work("a"), make_work("b")]

        first = engine.score_batch(works)
        second = engine.score_batch(list(reversed(works)))

        assert first == second
        assert repo.fetch_ctr_stats.call_count == 1
        assert metrics.cache_hits == {"work-quality-scores": 1}

    def test_custom_weights(self) -> None:
        """Weights come from the configuration."""
        config = QualityConfig(
            ctr_weight=0.0,
            engagement_weight=0.0,
            content_weight=0.0,
            consistency_weight=1.0,
        )
        engine = _make_engine(config=config)

        result = engine.score_batch([make_work("w1")])

        assert result["w1"].overall_quality_score == 5.0
