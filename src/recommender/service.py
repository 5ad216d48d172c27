"""Recommendation service orchestrating the full pipeline.

Guests get a cached popular result. Signed-in readers go through strategy
selection, aggregation, recency filtering, ranking and challenge blending.
Any unexpected error is returned as a RecommendationFailure rather than
raised.
"""

import time
import uuid
from collections.abc import Callable, Collection
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import TypeVar

import structlog

from src.config.schemas.recommender import RecommenderConfig
from src.recommender.aggregator import CandidateAggregator
from src.recommender.blender import DiversityBlender
from src.recommender.cache import InMemoryTTLCache, cache_key, read_through
from src.recommender.clock import utc_now
from src.recommender.constants import (
    CACHE_KEY_GUEST,
    CACHE_KEY_POPULARITY_FALLBACK,
    MORE_RECOMMENDATIONS_UNAVAILABLE,
    RECOMMENDATIONS_UNAVAILABLE,
    SOURCE_LABEL_GUEST,
)
from src.recommender.errors import RecommenderErrorClass
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import (
    MoreRecommendations,
    RecommendationFailure,
    RecommendationResult,
    ScoredWork,
    Strategy,
    UserBehaviorProfile,
    UserPreferenceProfile,
)
from src.recommender.protocols import RecommendationCache, WorkRepository
from src.recommender.quality import ConsistencyScorer, QualityScoreEngine
from src.recommender.ranker import WorkRanker
from src.recommender.recency import RecencyExclusionFilter
from src.recommender.state_machine import PipelineStateMachine
from src.recommender.strategy import select_strategy, source_label


logger = structlog.get_logger()

T = TypeVar("T")


class RecommendationService:
    """Entry point for recommendation and load-more requests.

    The service owns the cache; components are built per request so each
    one logs with the request id and shares the request's reference time.
    """

    def __init__(
        self,
        repository: WorkRepository,
        config: RecommenderConfig | None = None,
        cache: RecommendationCache | None = None,
        consistency_scorer: ConsistencyScorer | None = None,
        metrics: RecommendationMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Gateway for works, reader activity and telemetry.
            config: Recommender configuration.
            cache: Result cache; an in-memory TTL cache by default.
            consistency_scorer: Pluggable consistency signal.
            metrics: Optional metrics instance.
            clock: Reference time provider.
        """
        self._repository = repository
        self._config = config or RecommenderConfig()
        self._cache = cache if cache is not None else InMemoryTTLCache()
        self._metrics = metrics or RecommendationMetrics.get_instance()
        self._clock = clock
        self._quality_engine = QualityScoreEngine(
            repository,
            config=self._config.quality,
            cache=self._cache,
            cache_config=self._config.cache,
            consistency_scorer=consistency_scorer,
            metrics=self._metrics,
        )
        self._log = logger.bind(component="recommender", subcomponent="service")

    @property
    def config(self) -> RecommenderConfig:
        """Active configuration."""
        return self._config

    def get_recommendations(
        self,
        reader_id: str | None = None,
        exclude_work_ids: Collection[str] | None = None,
        target_count: int | None = None,
    ) -> RecommendationResult | RecommendationFailure:
        """Recommend works for a reader or a guest.

        Args:
            reader_id: Signed-in reader, or None for a guest.
            exclude_work_ids: Works the caller has already shown.
            target_count: Maximum works returned (default 72).

        Returns:
            RecommendationResult, or RecommendationFailure on unexpected errors.
        """
        target = (
            target_count
            if target_count is not None
            else self._config.pagination.default_target_count
        )
        excluded = frozenset(exclude_work_ids or ())
        request_id = uuid.uuid4().hex[:12]
        log = self._log.bind(request_id=request_id, reader_id=reader_id or "guest")
        machine = PipelineStateMachine(request_id)
        start = time.perf_counter()

        log.info(
            "recommendation_started",
            target_count=target,
            excluded_count=len(excluded),
        )

        try:
            if reader_id:
                result = self._reader_pipeline(
                    machine, request_id, reader_id, excluded, target
                )
            else:
                result = self._guest_pipeline(machine, excluded, target)
        except Exception:  # noqa: BLE001
            machine.to_failed()
            self._metrics.record_pipeline_failure()
            log.error("recommendation_failed", exc_info=True)
            return RecommendationFailure(
                error=RECOMMENDATIONS_UNAVAILABLE,
                error_class=RecommenderErrorClass.PIPELINE_FAILURE,
            )

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        self._metrics.record_request(result.strategy.value)
        self._metrics.record_pipeline_duration(duration_ms)
        for scored in result.works:
            self._metrics.record_score(scored.recommendation_score)

        log.info(
            "recommendation_complete",
            strategy=result.strategy.value,
            total=result.total,
            challenge_count=sum(1 for w in result.works if w.is_challenge),
            duration_ms=duration_ms,
        )
        return result

    def get_more_recommendations(
        self,
        reader_id: str | None = None,
        exclude_work_ids: Collection[str] | None = None,
        offset: int = 0,
    ) -> MoreRecommendations | RecommendationFailure:
        """Return the next page of works not yet shown.

        Rebuilds a full pool with the shown works excluded and returns the
        next page from it.

        Args:
            reader_id: Signed-in reader, or None for a guest.
            exclude_work_ids: Works already shown.
            offset: Number of works already shown.

        Returns:
            MoreRecommendations, or RecommendationFailure on unexpected errors.
        """
        excluded = frozenset(exclude_work_ids or ())
        page_size = self._config.pagination.page_size

        pool = self.get_recommendations(
            reader_id,
            excluded,
            target_count=self._config.pagination.more_pool_size,
        )
        if isinstance(pool, RecommendationFailure):
            return RecommendationFailure(
                error=MORE_RECOMMENDATIONS_UNAVAILABLE,
                error_class=pool.error_class,
            )

        remaining = [w for w in pool.works if w.work_id not in excluded]
        page = remaining[:page_size]

        self._log.info(
            "more_recommendations_served",
            reader_id=reader_id or "guest",
            offset=offset,
            returned=len(page),
            remaining=len(remaining),
        )
        return MoreRecommendations(
            works=page,
            has_more=len(remaining) > page_size,
            strategy=pool.strategy,
            source=pool.source,
            offset=offset,
            next_offset=offset + len(page),
        )

    def _guest_pipeline(
        self,
        machine: PipelineStateMachine,
        excluded: frozenset[str],
        target: int,
    ) -> RecommendationResult:
        machine.to_strategy_selected()
        guest_limit = self._config.pagination.guest_limit
        cached = read_through(
            self._cache,
            CACHE_KEY_GUEST,
            cache_key(CACHE_KEY_GUEST, limit=guest_limit),
            self._config.cache.guest_ttl,
            lambda: tuple(self._build_guest_works(guest_limit)),
            self._metrics,
        )
        # A cached guest result stands in for aggregation and ranking.
        machine.to_candidates_aggregated()
        machine.to_filtered()
        machine.to_ranked()

        works = [w for w in cached if w.work_id not in excluded][:target]
        machine.to_blended()

        result = RecommendationResult(
            works=works,
            strategy=Strategy.POPULAR,
            source=SOURCE_LABEL_GUEST,
            total=len(works),
        )
        machine.to_complete()
        return result

    def _build_guest_works(self, limit: int) -> list[ScoredWork]:
        request_id = "guest-" + uuid.uuid4().hex[:8]
        aggregation = self._aggregator(request_id).aggregate(Strategy.POPULAR)
        ranked = self._ranker(request_id).rank(aggregation.candidates)
        return ranked[:limit]

    def _reader_pipeline(
        self,
        machine: PipelineStateMachine,
        request_id: str,
        reader_id: str,
        excluded: frozenset[str],
        target: int,
    ) -> RecommendationResult:
        behavior, preferences, followed = self._load_reader_context(reader_id)

        strategy = select_strategy(behavior.total_actions, self._config.strategy)
        machine.to_strategy_selected()
        self._log.info(
            "strategy_selected",
            request_id=request_id,
            strategy=strategy.value,
            total_actions=behavior.total_actions,
        )

        aggregation = self._aggregator(request_id).aggregate(
            strategy, reader_id, excluded
        )
        machine.to_candidates_aggregated()

        recency = RecencyExclusionFilter(self._repository, self._config.recency)
        candidates = recency.apply(aggregation.candidates, reader_id)
        machine.to_filtered()

        ranker = self._ranker(request_id)
        ranked = ranker.rank(candidates, preferences, followed)
        available = [w for w in ranked if w.work_id not in excluded][:target]
        if not available and self._config.pagination.enable_popularity_fallback:
            available = self._popularity_fallback(ranker, excluded)[:target]
        machine.to_ranked()

        blender = DiversityBlender(
            self._repository,
            ranker,
            config=self._config.blending,
            page_size=self._config.pagination.page_size,
            metrics=self._metrics,
            request_id=request_id,
        )
        works = blender.blend(
            available,
            reader_id,
            target,
            preferences=preferences,
            followed_author_ids=followed,
            exclude_work_ids=excluded,
        )
        machine.to_blended()

        result = RecommendationResult(
            works=works,
            strategy=strategy,
            source=source_label(strategy),
            total=len(works),
        )
        machine.to_complete()
        return result

    def _load_reader_context(
        self, reader_id: str
    ) -> tuple[UserBehaviorProfile, UserPreferenceProfile, set[str]]:
        """Fetch behavior, preferences and follows concurrently."""
        with ThreadPoolExecutor(max_workers=3) as executor:
            behavior_future = executor.submit(
                self._profile_or_default,
                "behavior_profile",
                lambda: self._repository.fetch_user_behavior_profile(reader_id),
                UserBehaviorProfile(),
            )
            preferences_future = executor.submit(
                self._profile_or_default,
                "preference_profile",
                lambda: self._repository.fetch_user_preference_profile(reader_id),
                UserPreferenceProfile(),
            )
            followed_future = executor.submit(
                self._profile_or_default,
                "followed_authors",
                lambda: self._repository.fetch_followed_author_ids(reader_id),
                set(),
            )
        return (
            behavior_future.result(),
            preferences_future.result(),
            followed_future.result(),
        )

    def _profile_or_default(self, name: str, fetch: Callable[[], T], default: T) -> T:
        try:
            return fetch()
        except Exception:  # noqa: BLE001
            self._metrics.record_profile_failure()
            self._log.warning("profile_unavailable", profile=name, exc_info=True)
            return default

    def _popularity_fallback(
        self, ranker: WorkRanker, excluded: frozenset[str]
    ) -> list[ScoredWork]:
        limit = self._config.pagination.popularity_fallback_limit
        try:
            works = read_through(
                self._cache,
                CACHE_KEY_POPULARITY_FALLBACK,
                cache_key(CACHE_KEY_POPULARITY_FALLBACK, limit=limit),
                self._config.cache.popularity_fallback_ttl,
                lambda: tuple(self._repository.fetch_popular_works(limit)),
                self._metrics,
            )
        except Exception:  # noqa: BLE001
            self._log.warning("popularity_fallback_unavailable", exc_info=True)
            return []

        self._log.info("popularity_fallback_served", works=len(works))
        return ranker.rank_by_trend(
            [w for w in works if w.work_id not in excluded]
        )

    def _aggregator(self, request_id: str) -> CandidateAggregator:
        return CandidateAggregator(
            self._repository,
            limits=self._config.sources,
            cache=self._cache,
            cache_config=self._config.cache,
            max_workers=self._config.max_workers,
            metrics=self._metrics,
            request_id=request_id,
        )

    def _ranker(self, request_id: str) -> WorkRanker:
        return WorkRanker(
            self._quality_engine,
            config=self._config.ranking,
            metrics=self._metrics,
            now=self._clock(),
            request_id=request_id,
        )
