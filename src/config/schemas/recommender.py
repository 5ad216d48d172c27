"""Recommender configuration schema."""

from typing import Annotated

from pydantic import Field, model_validator

from src.data_model import Count, Score, StrictBaseModel


class StrategyConfig(StrictBaseModel):
    """Activity thresholds for strategy selection.

    Attributes:
        personalized_min_actions: Minimum total actions for personalized.
        adaptive_min_actions: Minimum total actions for adaptive.
    """

    personalized_min_actions: Annotated[int, Field(ge=1)] = 50
    adaptive_min_actions: Annotated[int, Field(ge=1)] = 10

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "StrategyConfig":
        """Ensure the adaptive threshold sits below the personalized one."""
        if self.adaptive_min_actions >= self.personalized_min_actions:
            msg = "adaptive_min_actions must be lower than personalized_min_actions"
            raise ValueError(msg)
        return self


class SourceLimitsConfig(StrictBaseModel):
    """Per-strategy limits for each candidate source.

    Attributes:
        personalized_followed: Followed-author works for personalized.
        personalized_category_tag: Category/tag works for personalized.
        adaptive_followed: Followed-author works for adaptive.
        adaptive_category_tag: Category/tag works for adaptive.
        adaptive_popular: Popular works for adaptive.
        popular_popular: Popular works for popular.
        popular_quality_new: Quality-filtered new works for popular.
    """

    personalized_followed: Annotated[int, Field(ge=0, le=500)] = 30
    personalized_category_tag: Annotated[int, Field(ge=0, le=500)] = 50
    adaptive_followed: Annotated[int, Field(ge=0, le=500)] = 20
    adaptive_category_tag: Annotated[int, Field(ge=0, le=500)] = 30
    adaptive_popular: Annotated[int, Field(ge=0, le=500)] = 20
    popular_popular: Annotated[int, Field(ge=0, le=500)] = 30
    popular_quality_new: Annotated[int, Field(ge=0, le=500)] = 20


class QualityConfig(StrictBaseModel):
    """Quality score weights and thresholds.

    Attributes:
        ctr_weight: Weight of the CTR component.
        engagement_weight: Weight of the engagement component.
        content_weight: Weight of the content quality component.
        consistency_weight: Weight of the consistency component.
        min_impressions: Impressions required before CTR/engagement count.
        default_consistency_score: Placeholder consistency value.
        new_work_window_days: Age window for quality-filtered new works.
        new_work_ctr_share: Share of new-work slots reserved for CTR-validated works.
        max_workers: Thread pool size for batch scoring.
    """

    ctr_weight: Annotated[float, Field(ge=0.0, le=1.0)] = 0.4
    engagement_weight: Annotated[float, Field(ge=0.0, le=1.0)] = 0.3
    content_weight: Annotated[float, Field(ge=0.0, le=1.0)] = 0.2
    consistency_weight: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1
    min_impressions: Count = 20
    default_consistency_score: Score = 5.0
    new_work_window_days: Annotated[int, Field(ge=1, le=365)] = 14
    new_work_ctr_share: Annotated[float, Field(ge=0.0, le=1.0)] = 0.7
    max_workers: Annotated[int, Field(ge=1, le=64)] = 8

    @model_validator(mode="after")
    def validate_weights_sum(self) -> "QualityConfig":
        """Keep the overall score inside [0, 10]."""
        total = (
            self.ctr_weight
            + self.engagement_weight
            + self.content_weight
            + self.consistency_weight
        )
        if total > 1.0 + 1e-9:
            msg = f"Quality weights must sum to at most 1.0 (got {total:.2f})"
            raise ValueError(msg)
        return self


class RankingConfig(StrictBaseModel):
    """Composite ranking configuration.

    Attributes:
        quality_weight: Weight of the quality score.
        behavior_weight: Weight of the behavior score.
        lightweight_threshold: Candidate count above which scoring is skipped.
        fallback_quality_score: Quality score used when batch scoring fails.
        fresh_days: Age in days that still earns the freshness bonus.
    """

    quality_weight: Annotated[float, Field(ge=0.0, le=1.0)] = 0.3
    behavior_weight: Annotated[float, Field(ge=0.0, le=1.0)] = 0.7
    lightweight_threshold: Annotated[int, Field(ge=1)] = 100
    fallback_quality_score: Score = 5.0
    fresh_days: Annotated[int, Field(ge=0, le=365)] = 7

    @model_validator(mode="after")
    def validate_weights_sum(self) -> "RankingConfig":
        """Keep the recommendation score inside [0, 10]."""
        if self.quality_weight + self.behavior_weight > 1.0 + 1e-9:
            msg = "quality_weight + behavior_weight must be at most 1.0"
            raise ValueError(msg)
        return self


class RecencyConfig(StrictBaseModel):
    """Reading-progress exclusion configuration.

    Attributes:
        max_progress_percent: Works with progress above this are excluded.
    """

    max_progress_percent: Annotated[float, Field(ge=0.0, le=100.0)] = 10.0


class BlendingConfig(StrictBaseModel):
    """Challenge blending configuration.

    Attributes:
        challenge_divisor: One challenge slot per this many target slots.
        insert_every: Insert a challenge at every Nth position.
        fetch_multiplier: Over-fetch factor for challenge candidates.
    """

    challenge_divisor: Annotated[int, Field(ge=1, le=100)] = 5
    insert_every: Annotated[int, Field(ge=1, le=100)] = 8
    fetch_multiplier: Annotated[int, Field(ge=1, le=10)] = 2


class CacheConfig(StrictBaseModel):
    """Cache TTLs in seconds.

    Attributes:
        guest_ttl: Guest recommendations.
        popular_ttl: Globally popular works.
        quality_new_ttl: Quality-filtered new works.
        popularity_fallback_ttl: Popularity fallback result.
        quality_scores_ttl: Quality score batches.
    """

    guest_ttl: Count = 1800
    popular_ttl: Count = 900
    quality_new_ttl: Count = 1800
    popularity_fallback_ttl: Count = 900
    quality_scores_ttl: Count = 3600


class PaginationConfig(StrictBaseModel):
    """Paging configuration.

    Attributes:
        page_size: Works per page; blending is skipped at or below this.
        default_target_count: Default number of works per request.
        guest_limit: Works kept in the cached guest result.
        more_pool_size: Pool rebuilt for each load-more request.
        popularity_fallback_limit: Works served by the popularity fallback.
        enable_popularity_fallback: Serve popular works when a result is empty.
    """

    page_size: Annotated[int, Field(ge=1, le=100)] = 9
    default_target_count: Annotated[int, Field(ge=1, le=500)] = 72
    guest_limit: Annotated[int, Field(ge=1, le=500)] = 72
    more_pool_size: Annotated[int, Field(ge=1, le=500)] = 72
    popularity_fallback_limit: Annotated[int, Field(ge=1, le=500)] = 20
    enable_popularity_fallback: bool = False


class RecommenderConfig(StrictBaseModel):
    """Root configuration for recommender.yaml.

    Attributes:
        version: Schema version.
        strategy: Strategy thresholds.
        sources: Source limits.
        quality: Quality scoring.
        ranking: Composite ranking.
        recency: Reading-progress exclusion.
        blending: Challenge blending.
        cache: Cache TTLs.
        pagination: Paging.
        max_workers: Thread pool size for source fan-out.
    """

    version: Annotated[str, Field(pattern=r"^\d+\.\d+$")] = "1.0"
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    sources: SourceLimitsConfig = Field(default_factory=SourceLimitsConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    recency: RecencyConfig = Field(default_factory=RecencyConfig)
    blending: BlendingConfig = Field(default_factory=BlendingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    max_workers: Annotated[int, Field(ge=1, le=64)] = 4
