"""Quality score engine for works.

Converts impression telemetry and content attributes into a reader-independent
0-10 quality score. Batches are scored concurrently with per-work defaults,
so one bad work never fails the batch.
"""

import hashlib
import math
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import structlog

from src.config.schemas.recommender import CacheConfig, QualityConfig
from src.recommender.cache import cache_key, read_through
from src.recommender.constants import (
    CACHE_KEY_QUALITY_SCORES,
    CTR_LOG_BASE_PERCENT,
    CTR_SATURATION,
    MAX_SCORE,
    MIN_SCORE,
)
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import (
    ContentAttributes,
    CTRStats,
    QualityScoreComponents,
    WorkCandidate,
)
from src.recommender.protocols import RecommendationCache, WorkRepository


logger = structlog.get_logger()

ConsistencyScorer = Callable[[WorkCandidate], float]
"""Pluggable consistency signal; returns a 0-10 score for a work."""

# Used for a single work whose scoring raised.
DEFAULT_QUALITY_COMPONENTS = QualityScoreComponents(
    ctr_score=0.0,
    engagement_score=5.0,
    content_quality_score=2.0,
    consistency_score=5.0,
    overall_quality_score=3.0,
)


def constant_consistency(score: float = 5.0) -> ConsistencyScorer:
    """Build a consistency scorer that returns the same value for every work."""

    def _score(_work: WorkCandidate) -> float:
        return score

    return _score


def calculate_ctr_score(ctr: float) -> float:
    """Score a unique click-through rate on a log curve.

    Args:
        ctr: Unique CTR as a fraction (0.05 == 5%).

    Returns:
        Score between 0 and 10; 15% CTR or more saturates at 10.
    """
    if ctr <= 0:
        return 0.0
    if ctr >= CTR_SATURATION:
        return MAX_SCORE
    log_ctr = math.log10(ctr * 100 + 1)
    max_log = math.log10(CTR_LOG_BASE_PERCENT + 1)
    return min(MAX_SCORE, max(MIN_SCORE, log_ctr / max_log * 10))


def calculate_engagement_score(
    avg_display_duration: float,
    avg_intersection_ratio: float,
    impression_count: int,
) -> float:
    """Score how long and how fully a work's card was seen.

    Args:
        avg_display_duration: Mean display time in milliseconds.
        avg_intersection_ratio: Mean visible fraction of the card.
        impression_count: Number of impressions.

    Returns:
        Sum of the duration, visibility and exposure tiers, capped at 10.
    """
    score = 0.0

    if avg_display_duration >= 5000:
        score += 4
    elif avg_display_duration >= 3000:
        score += 3
    elif avg_display_duration >= 2000:
        score += 2
    elif avg_display_duration >= 1000:
        score += 1

    if avg_intersection_ratio >= 0.9:
        score += 3
    elif avg_intersection_ratio >= 0.7:
        score += 2.5
    elif avg_intersection_ratio >= 0.5:
        score += 2
    else:
        score += 1

    if impression_count >= 1000:
        score += 3
    elif impression_count >= 500:
        score += 2.5
    elif impression_count >= 100:
        score += 2
    elif impression_count >= 50:
        score += 1.5
    else:
        score += 1

    return min(MAX_SCORE, score)


def calculate_content_quality_score(attributes: ContentAttributes) -> float:
    """Score body length, cover image, title and description.

    Args:
        attributes: Content attributes of the work.

    Returns:
        Additive score capped at 10.
    """
    score = 0.0

    length = attributes.content_length
    if length <= 10:
        score += 0.1
    elif length >= 2000:
        score += 4
    elif length >= 1000:
        score += 3
    elif length >= 500:
        score += 2
    elif length >= 200:
        score += 1
    else:
        score += 0.5

    score += 3 if attributes.has_image else 1

    if 10 <= attributes.title_length <= 50:
        score += 1.5
    elif attributes.title_length > 0:
        score += 0.5

    if attributes.description_length >= 20:
        score += 1.5
    elif attributes.description_length > 0:
        score += 0.5

    return min(MAX_SCORE, score)


class QualityScoreEngine:
    """Computes QualityScoreComponents for single works and batches.

    Scoring formula:
        overall = ctr * 0.4 + engagement * 0.3 + content * 0.2 + consistency * 0.1

    CTR and engagement only count once a work has enough impressions;
    below the threshold they contribute 0 and the other weights are not
    rescaled.
    """

    def __init__(
        self,
        repository: WorkRepository,
        config: QualityConfig | None = None,
        cache: RecommendationCache | None = None,
        cache_config: CacheConfig | None = None,
        consistency_scorer: ConsistencyScorer | None = None,
        metrics: RecommendationMetrics | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            repository: Gateway used to fetch CTR telemetry.
            config: Quality weights and thresholds.
            cache: Optional cache for batch results.
            cache_config: Cache TTLs.
            consistency_scorer: Consistency signal; defaults to a constant.
            metrics: Optional metrics instance.
        """
        self._repository = repository
        self._config = config or QualityConfig()
        self._cache = cache
        self._cache_config = cache_config or CacheConfig()
        self._consistency_scorer = consistency_scorer or constant_consistency(
            self._config.default_consistency_score
        )
        self._metrics = metrics or RecommendationMetrics.get_instance()
        self._log = logger.bind(component="recommender", subcomponent="quality")

    def score_components(
        self, work: WorkCandidate, stats: CTRStats | None
    ) -> QualityScoreComponents:
        """Compute quality components for one work.

        Args:
            work: Work to score.
            stats: CTR telemetry, or None when unavailable.

        Returns:
            Quality score breakdown.
        """
        impressions = stats.impression_count if stats else 0

        ctr_score = 0.0
        engagement_score = 0.0
        if stats is not None and impressions >= self._config.min_impressions:
            ctr_score = calculate_ctr_score(stats.ctr_unique)
            engagement_score = calculate_engagement_score(
                stats.avg_display_duration,
                stats.avg_intersection_ratio,
                stats.impression_count,
            )

        content_score = calculate_content_quality_score(work.content_attributes())
        consistency_score = min(
            MAX_SCORE, max(MIN_SCORE, self._consistency_scorer(work))
        )

        overall = (
            ctr_score * self._config.ctr_weight
            + engagement_score * self._config.engagement_weight
            + content_score * self._config.content_weight
            + consistency_score * self._config.consistency_weight
        )

        return QualityScoreComponents(
            ctr_score=ctr_score,
            engagement_score=engagement_score,
            content_quality_score=content_score,
            consistency_score=consistency_score,
            overall_quality_score=round(min(MAX_SCORE, overall), 2),
        )

    def score_batch(
        self, works: list[WorkCandidate]
    ) -> dict[str, QualityScoreComponents]:
        """Score a batch of works, cached on the work-id set.

        Args:
            works: Works to score (unique work ids).

        Returns:
            Mapping of work_id to components; every input id is present.
        """
        if not works:
            return {}

        work_ids = sorted(w.work_id for w in works)
        if self._cache is None:
            return self._score_batch_uncached(works)

        digest = hashlib.sha256("\n".join(work_ids).encode("utf-8")).hexdigest()[:16]
        key = cache_key(CACHE_KEY_QUALITY_SCORES, ids=digest)
        cached = read_through(
            self._cache,
            CACHE_KEY_QUALITY_SCORES,
            key,
            self._cache_config.quality_scores_ttl,
            lambda: tuple(self._score_batch_uncached(works).items()),
            self._metrics,
        )
        return dict(cached)

    def _fetch_ctr_stats(self, work_ids: list[str]) -> dict[str, CTRStats]:
        try:
            return self._repository.fetch_ctr_stats(work_ids)
        except Exception:  # noqa: BLE001
            self._log.warning(
                "ctr_stats_unavailable", work_count=len(work_ids), exc_info=True
            )
            return {}

    def _score_batch_uncached(
        self, works: list[WorkCandidate]
    ) -> dict[str, QualityScoreComponents]:
        ctr_stats = self._fetch_ctr_stats([w.work_id for w in works])

        with ThreadPoolExecutor(max_workers=self._config.max_workers) as executor:
            futures = {
                w.work_id: executor.submit(
                    self.score_components, w, ctr_stats.get(w.work_id)
                )
                for w in works
            }

        results: dict[str, QualityScoreComponents] = {}
        degraded = 0
        for work_id, future in futures.items():
            try:
                results[work_id] = future.result()
            except Exception:  # noqa: BLE001
                degraded += 1
                self._log.warning("quality_score_failed", work_id=work_id, exc_info=True)
                results[work_id] = DEFAULT_QUALITY_COMPONENTS

        if degraded:
            self._metrics.record_scoring_degraded(degraded)

        self._log.info(
            "quality_scoring_complete",
            works_scored=len(results),
            with_telemetry=len(ctr_stats),
            degraded=degraded,
        )
        return results
