"""Configuration schema definitions."""

from src.config.schemas.recommender import (
    BlendingConfig,
    CacheConfig,
    PaginationConfig,
    QualityConfig,
    RankingConfig,
    RecencyConfig,
    RecommenderConfig,
    SourceLimitsConfig,
    StrategyConfig,
)


__all__ = [
    "BlendingConfig",
    "CacheConfig",
    "PaginationConfig",
    "QualityConfig",
    "RankingConfig",
    "RecencyConfig",
    "RecommenderConfig",
    "SourceLimitsConfig",
    "StrategyConfig",
]
