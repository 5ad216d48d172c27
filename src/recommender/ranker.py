"""Deduplication and composite ranking of candidate works."""

from collections.abc import Collection
from datetime import datetime

import structlog

from src.config.schemas.recommender import RankingConfig
from src.recommender.behavior import BehaviorScoreCalculator
from src.recommender.constants import MAX_SCORE
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import (
    ChallengeCandidate,
    ScoredWork,
    StatsSnapshot,
    UserPreferenceProfile,
    WorkCandidate,
)
from src.recommender.quality import QualityScoreEngine


logger = structlog.get_logger()

_EMPTY_PREFERENCES = UserPreferenceProfile()


def deduplicate(candidates: list[WorkCandidate]) -> list[WorkCandidate]:
    """Drop repeated work ids, keeping the first occurrence.

    Args:
        candidates: Candidates in source precedence order.

    Returns:
        Unique candidates, order preserved.
    """
    seen: set[str] = set()
    unique: list[WorkCandidate] = []
    for candidate in candidates:
        if candidate.work_id in seen:
            continue
        seen.add(candidate.work_id)
        unique.append(candidate)
    return unique


def lightweight_sort(candidates: list[WorkCandidate]) -> list[WorkCandidate]:
    """Order by trend score, then likes, then views (all descending, stable)."""
    return sorted(
        candidates,
        key=lambda w: (-w.trend_score, -w.likes, -w.views),
    )


def composite_score(
    quality_score: float,
    behavior_score: float,
    config: RankingConfig | None = None,
) -> float:
    """Blend quality and behavior into the recommendation score.

    Args:
        quality_score: Reader-independent quality (0-10).
        behavior_score: Reader affinity (0-10).
        config: Weights; defaults to 0.3 quality and 0.7 behavior.

    Returns:
        Recommendation score rounded to 2 decimals.
    """
    config = config or RankingConfig()
    total = quality_score * config.quality_weight + behavior_score * config.behavior_weight
    return round(min(MAX_SCORE, max(0.0, total)), 2)


class WorkRanker:
    """Deduplicates candidates, scores them and sorts by recommendation score.

    Pools above ``lightweight_threshold`` skip quality scoring and are
    ordered by trend score instead.
    """

    def __init__(
        self,
        quality_engine: QualityScoreEngine,
        config: RankingConfig | None = None,
        metrics: RecommendationMetrics | None = None,
        now: datetime | None = None,
        request_id: str = "",
    ) -> None:
        """Initialize the ranker.

        Args:
            quality_engine: Engine used for batch quality scoring.
            config: Ranking weights and thresholds.
            metrics: Optional metrics instance.
            now: Reference time for freshness.
            request_id: Request identifier for logging.
        """
        self._quality_engine = quality_engine
        self._config = config or RankingConfig()
        self._metrics = metrics or RecommendationMetrics.get_instance()
        self._behavior = BehaviorScoreCalculator(self._config, now)
        self._log = logger.bind(
            component="recommender",
            subcomponent="ranker",
            request_id=request_id,
        )

    def rank(
        self,
        candidates: list[WorkCandidate],
        preferences: UserPreferenceProfile | None = None,
        followed_author_ids: Collection[str] = frozenset(),
    ) -> list[ScoredWork]:
        """Deduplicate, score and sort candidates.

        Args:
            candidates: Candidates in source precedence order.
            preferences: Reader preferences; empty for guests.
            followed_author_ids: Authors the reader follows.

        Returns:
            Scored works sorted by descending recommendation score.
        """
        unique = deduplicate(candidates)
        preferences = preferences or _EMPTY_PREFERENCES

        if len(unique) > self._config.lightweight_threshold:
            self._metrics.record_lightweight_ranking()
            self._log.info(
                "lightweight_ranking",
                candidate_count=len(unique),
                threshold=self._config.lightweight_threshold,
            )
            return self.rank_by_trend(unique)

        quality_scores = self._quality_scores(unique)

        scored: list[ScoredWork] = []
        for work in unique:
            snapshot = StatsSnapshot.of(work)
            quality = quality_scores[work.work_id]
            behavior = self._behavior.score(
                work, snapshot, preferences, followed_author_ids
            )
            scored.append(
                ScoredWork(
                    work=work,
                    snapshot_views=snapshot.views,
                    snapshot_likes=snapshot.likes,
                    snapshot_comments=snapshot.comments,
                    quality_score=quality,
                    user_behavior_score=behavior.score,
                    recommendation_score=composite_score(
                        quality, behavior.score, self._config
                    ),
                    flags=behavior.flags,
                )
            )

        scored.sort(key=lambda s: -s.recommendation_score)

        self._log.info(
            "ranking_complete",
            input_count=len(candidates),
            unique_count=len(unique),
            top_score=scored[0].recommendation_score if scored else None,
        )
        return scored

    def score_challenges(
        self,
        challenges: list[ChallengeCandidate],
        preferences: UserPreferenceProfile | None = None,
        followed_author_ids: Collection[str] = frozenset(),
    ) -> list[ScoredWork]:
        """Score challenge works with the fallback quality score.

        Order is preserved; challenge placement is decided by the blender.

        Args:
            challenges: Challenge candidates.
            preferences: Reader preferences.
            followed_author_ids: Authors the reader follows.

        Returns:
            Scored challenge works flagged with their reason.
        """
        preferences = preferences or _EMPTY_PREFERENCES
        quality = self._config.fallback_quality_score
        scored: list[ScoredWork] = []
        for challenge in challenges:
            work = challenge.work
            snapshot = StatsSnapshot.of(work)
            behavior = self._behavior.score(
                work, snapshot, preferences, followed_author_ids
            )
            scored.append(
                ScoredWork(
                    work=work,
                    snapshot_views=snapshot.views,
                    snapshot_likes=snapshot.likes,
                    snapshot_comments=snapshot.comments,
                    quality_score=quality,
                    user_behavior_score=behavior.score,
                    recommendation_score=composite_score(
                        quality, behavior.score, self._config
                    ),
                    flags=behavior.flags,
                    is_challenge=True,
                    challenge_reason=challenge.reason,
                )
            )
        return scored

    def _quality_scores(self, works: list[WorkCandidate]) -> dict[str, float]:
        try:
            components = self._quality_engine.score_batch(works)
            return {
                w.work_id: components[w.work_id].overall_quality_score for w in works
            }
        except Exception:  # noqa: BLE001
            self._log.warning(
                "quality_scoring_failed",
                work_count=len(works),
                fallback_score=self._config.fallback_quality_score,
                exc_info=True,
            )
            self._metrics.record_scoring_degraded(len(works))
            return {w.work_id: self._config.fallback_quality_score for w in works}

    def rank_by_trend(self, works: list[WorkCandidate]) -> list[ScoredWork]:
        """Order works by trend score without quality or behavior scoring.

        The recommendation score is the trend score scaled to 0-10.
        """
        return [
            ScoredWork(
                work=work,
                snapshot_views=work.views,
                snapshot_likes=work.likes,
                snapshot_comments=work.comments,
                recommendation_score=min(MAX_SCORE, round(work.trend_score / 10, 2)),
            )
            for work in lightweight_sort(works)
        ]
