"""Work recommendation engine.

This module selects a strategy from a reader's activity, aggregates
candidate works from several sources, ranks them by a composite of
quality and reader affinity, excludes in-progress works and blends in
discovery works, with cache-backed incremental paging.
"""

from src.recommender.cache import InMemoryTTLCache
from src.recommender.errors import (
    RecommenderError,
    RecommenderErrorClass,
    RepositoryError,
)
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import (
    ChallengeCandidate,
    ChallengeReason,
    CTRStats,
    MoreRecommendations,
    RecommendationFailure,
    RecommendationResult,
    ScoredWork,
    Strategy,
    UserBehaviorProfile,
    UserPreferenceProfile,
    WorkCandidate,
)
from src.recommender.pagination import FeedPaginator
from src.recommender.protocols import RecommendationCache, WorkRepository
from src.recommender.repository import Catalog, InMemoryWorkRepository
from src.recommender.service import RecommendationService
from src.recommender.state_machine import FeedState, PipelineState


__all__ = [
    "CTRStats",
    "Catalog",
    "ChallengeCandidate",
    "ChallengeReason",
    "FeedPaginator",
    "FeedState",
    "InMemoryTTLCache",
    "InMemoryWorkRepository",
    "MoreRecommendations",
    "PipelineState",
    "RecommendationCache",
    "RecommendationFailure",
    "RecommendationMetrics",
    "RecommendationResult",
    "RecommendationService",
    "RecommenderError",
    "RecommenderErrorClass",
    "RepositoryError",
    "ScoredWork",
    "Strategy",
    "UserBehaviorProfile",
    "UserPreferenceProfile",
    "WorkCandidate",
    "WorkRepository",
]
