"""Candidate aggregation across strategy-dependent sources.

Each strategy maps to a fixed source plan. Sources are fetched
concurrently; results are merged in plan order regardless of completion
order, and a failing source contributes an empty list.
"""

import time
from collections.abc import Callable, Collection
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

import structlog

from src.config.schemas.recommender import CacheConfig, SourceLimitsConfig
from src.recommender.cache import cache_key, read_through
from src.recommender.constants import (
    CACHE_KEY_POPULAR,
    CACHE_KEY_QUALITY_NEW,
    SOURCE_CATEGORY_TAG,
    SOURCE_FOLLOWED_AUTHORS,
    SOURCE_POPULAR,
    SOURCE_PRECEDENCE,
    SOURCE_QUALITY_NEW,
)
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import Strategy, WorkCandidate
from src.recommender.protocols import RecommendationCache, WorkRepository


logger = structlog.get_logger()


@dataclass(frozen=True)
class SourceFetch:
    """One entry of a source plan.

    Attributes:
        source_id: Source identifier.
        limit: Maximum works requested from the source.
    """

    source_id: str
    limit: int


@dataclass
class AggregationResult:
    """Result of one aggregation run.

    Attributes:
        strategy: Strategy whose plan was executed.
        candidates: Flat candidate list in plan order (duplicates allowed).
        source_counts: Works contributed per source.
        failed_sources: Sources that raised and contributed nothing.
        duration_ms: Wall time of the fan-out.
    """

    strategy: Strategy
    candidates: list[WorkCandidate] = field(default_factory=list)
    source_counts: dict[str, int] = field(default_factory=dict)
    failed_sources: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def all_failed(self) -> bool:
        """Whether every planned source failed."""
        return bool(self.failed_sources) and len(self.failed_sources) == len(
            self.source_counts
        )


def build_source_plan(
    strategy: Strategy, limits: SourceLimitsConfig | None = None
) -> list[SourceFetch]:
    """Return the ordered source plan for a strategy.

    Args:
        strategy: Selected strategy.
        limits: Per-source limits.

    Returns:
        Source fetches in merge precedence order.
    """
    limits = limits or SourceLimitsConfig()
    if strategy == Strategy.PERSONALIZED:
        plan = [
            SourceFetch(SOURCE_FOLLOWED_AUTHORS, limits.personalized_followed),
            SourceFetch(SOURCE_CATEGORY_TAG, limits.personalized_category_tag),
        ]
    elif strategy == Strategy.ADAPTIVE:
        plan = [
            SourceFetch(SOURCE_FOLLOWED_AUTHORS, limits.adaptive_followed),
            SourceFetch(SOURCE_CATEGORY_TAG, limits.adaptive_category_tag),
            SourceFetch(SOURCE_POPULAR, limits.adaptive_popular),
        ]
    else:
        plan = [
            SourceFetch(SOURCE_POPULAR, limits.popular_popular),
            SourceFetch(SOURCE_QUALITY_NEW, limits.popular_quality_new),
        ]
    return sorted(plan, key=lambda f: SOURCE_PRECEDENCE.index(f.source_id))


class CandidateAggregator:
    """Fetches candidates from every source of a strategy's plan."""

    def __init__(
        self,
        repository: WorkRepository,
        limits: SourceLimitsConfig | None = None,
        cache: RecommendationCache | None = None,
        cache_config: CacheConfig | None = None,
        max_workers: int = 4,
        metrics: RecommendationMetrics | None = None,
        request_id: str = "",
    ) -> None:
        """Initialize the aggregator.

        Args:
            repository: Gateway for source queries.
            limits: Per-source limits.
            cache: Optional cache for the reader-independent sources.
            cache_config: Cache TTLs.
            max_workers: Thread pool size for the fan-out.
            metrics: Optional metrics instance.
            request_id: Request identifier for logging.
        """
        self._repository = repository
        self._limits = limits or SourceLimitsConfig()
        self._cache = cache
        self._cache_config = cache_config or CacheConfig()
        self._max_workers = max_workers
        self._metrics = metrics or RecommendationMetrics.get_instance()
        self._log = logger.bind(
            component="recommender",
            subcomponent="aggregator",
            request_id=request_id,
        )

    def aggregate(
        self,
        strategy: Strategy,
        reader_id: str | None = None,
        exclude_work_ids: Collection[str] = (),
    ) -> AggregationResult:
        """Run the source plan for a strategy.

        Args:
            strategy: Selected strategy.
            reader_id: Reader id; required by the reader-specific sources.
            exclude_work_ids: Works the caller already has.

        Returns:
            AggregationResult with candidates merged in plan order.
        """
        plan = build_source_plan(strategy, self._limits)
        excluded = frozenset(exclude_work_ids)
        start = time.perf_counter()

        self._log.info(
            "aggregation_started",
            strategy=strategy.value,
            sources=[f.source_id for f in plan],
            excluded_count=len(excluded),
        )

        fetched: dict[str, list[WorkCandidate] | None] = {}

        if self._max_workers <= 1 or len(plan) <= 1:
            for fetch in plan:
                fetched[fetch.source_id] = self._run_source(fetch, reader_id, excluded)
        else:
            workers = min(self._max_workers, len(plan))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                future_to_fetch = {
                    executor.submit(self._run_source, fetch, reader_id, excluded): fetch
                    for fetch in plan
                }
                for future in as_completed(future_to_fetch):
                    fetch = future_to_fetch[future]
                    fetched[fetch.source_id] = future.result()

        result = AggregationResult(strategy=strategy)
        for fetch in plan:
            works = fetched.get(fetch.source_id)
            if works is None:
                result.failed_sources.append(fetch.source_id)
                works = []
            result.source_counts[fetch.source_id] = len(works)
            result.candidates.extend(works)

        result.duration_ms = round((time.perf_counter() - start) * 1000, 2)

        self._log.info(
            "aggregation_complete",
            strategy=strategy.value,
            candidate_count=len(result.candidates),
            source_counts=result.source_counts,
            failed_sources=result.failed_sources,
            duration_ms=result.duration_ms,
        )
        return result

    def _run_source(
        self,
        fetch: SourceFetch,
        reader_id: str | None,
        excluded: frozenset[str],
    ) -> list[WorkCandidate] | None:
        """Fetch one source; returns None when the source failed."""
        log = self._log.bind(source_id=fetch.source_id, limit=fetch.limit)
        if fetch.limit <= 0:
            return []

        try:
            works = self._fetch(fetch, reader_id, excluded)
        except Exception as e:  # noqa: BLE001
            log.warning("source_unavailable", error=str(e), exc_info=True)
            self._metrics.record_source_failure(fetch.source_id)
            return None

        if excluded:
            works = [w for w in works if w.work_id not in excluded]

        log.debug("source_fetched", works=len(works))
        return works

    def _fetch(
        self,
        fetch: SourceFetch,
        reader_id: str | None,
        excluded: frozenset[str],
    ) -> list[WorkCandidate]:
        if fetch.source_id == SOURCE_FOLLOWED_AUTHORS:
            return self._repository.fetch_followed_authors_works(
                self._require_reader(reader_id, fetch), fetch.limit, excluded
            )
        if fetch.source_id == SOURCE_CATEGORY_TAG:
            return self._repository.fetch_category_tag_matched_works(
                self._require_reader(reader_id, fetch), fetch.limit, excluded
            )
        if fetch.source_id == SOURCE_POPULAR:
            return self._cached(
                CACHE_KEY_POPULAR,
                fetch.limit,
                self._cache_config.popular_ttl,
                lambda: self._repository.fetch_popular_works(fetch.limit),
            )
        if fetch.source_id == SOURCE_QUALITY_NEW:
            return self._cached(
                CACHE_KEY_QUALITY_NEW,
                fetch.limit,
                self._cache_config.quality_new_ttl,
                lambda: self._repository.fetch_quality_new_works(fetch.limit),
            )
        msg = f"Unknown source: {fetch.source_id}"
        raise ValueError(msg)

    def _cached(
        self,
        name: str,
        limit: int,
        ttl: int,
        loader: Callable[[], list[WorkCandidate]],
    ) -> list[WorkCandidate]:
        if self._cache is None:
            return loader()
        cached = read_through(
            self._cache,
            name,
            cache_key(name, limit=limit),
            ttl,
            lambda: tuple(loader()),
            self._metrics,
        )
        return list(cached)

    @staticmethod
    def _require_reader(reader_id: str | None, fetch: SourceFetch) -> str:
        if not reader_id:
            msg = f"Source {fetch.source_id} requires a reader id"
            raise ValueError(msg)
        return reader_id
