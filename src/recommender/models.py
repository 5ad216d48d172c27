"""Data models for the recommendation engine."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import Field, field_validator, model_validator

from src.data_model import Count, Score, StrictBaseModel
from src.recommender.errors import RecommenderErrorClass


class Strategy(str, Enum):
    """Recommendation strategy chosen from the reader's activity level.

    - PERSONALIZED: Heavy readers; followed authors and preferences only
    - ADAPTIVE: Moderate readers; preferences mixed with popular works
    - POPULAR: Light readers and guests; popular and quality new works
    """

    PERSONALIZED = "personalized"
    ADAPTIVE = "adaptive"
    POPULAR = "popular"


class ChallengeReason(str, Enum):
    """Why a challenge candidate was picked for discovery."""

    NEW_CATEGORY = "new_category"
    NEW_AUTHOR = "new_author"
    TRENDING = "trending"


class InteractionType(str, Enum):
    """Kind of reader interaction with a work."""

    LIKE = "like"
    BOOKMARK = "bookmark"
    COMMENT = "comment"
    VIEW = "view"
    SHARE = "share"


class WorkCandidate(StrictBaseModel):
    """A work plus denormalized stats, as returned by the repository.

    Attributes:
        work_id: Unique work identifier.
        title: Work title.
        description: Short description.
        image_url: Cover image URL if any.
        content_length: Body length in characters.
        category: Work category.
        tags: Work tags.
        created_at: Publication timestamp.
        updated_at: Last update timestamp.
        user_id: Author's user id.
        author: Author display name.
        views: View count.
        likes: Like count.
        comments: Comment count.
        trend_score: Precomputed trend score (0-100).
    """

    work_id: Annotated[str, Field(min_length=1)]
    title: str = ""
    description: str | None = None
    image_url: str | None = None
    content_length: Count = 0
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user_id: str | None = None
    author: str | None = None
    views: Count = 0
    likes: Count = 0
    comments: Count = 0
    trend_score: Annotated[float, Field(ge=0.0)] = 0.0

    def content_attributes(self) -> "ContentAttributes":
        """Derive content attributes used by quality scoring."""
        return ContentAttributes(
            content_length=self.content_length,
            has_image=bool(self.image_url),
            title_length=len(self.title),
            description_length=len(self.description or ""),
        )


class ChallengeCandidate(StrictBaseModel):
    """A work picked from outside the reader's affinity profile."""

    work: WorkCandidate
    reason: ChallengeReason


class Interaction(StrictBaseModel):
    """A single reader interaction event."""

    user_id: Annotated[str, Field(min_length=1)]
    work_id: Annotated[str, Field(min_length=1)]
    kind: InteractionType
    occurred_at: datetime


class UserBehaviorProfile(StrictBaseModel):
    """Per-reader activity counters used for strategy selection."""

    likes_count: Count = 0
    bookmarks_count: Count = 0
    views_count: Count = 0
    shares_count: Count = 0
    comments_count: Count = 0
    follows_count: Count = 0

    @property
    def total_actions(self) -> int:
        """Sum of all activity counters."""
        return (
            self.likes_count
            + self.bookmarks_count
            + self.views_count
            + self.shares_count
            + self.comments_count
            + self.follows_count
        )


class CategoryWeight(StrictBaseModel):
    """Weighted preferred category."""

    category: Annotated[str, Field(min_length=1)]
    weight: Annotated[float, Field(ge=0.0)]


class TagWeight(StrictBaseModel):
    """Weighted preferred tag."""

    tag: Annotated[str, Field(min_length=1)]
    weight: Annotated[float, Field(ge=0.0)]


class UserPreferenceProfile(StrictBaseModel):
    """Ranked category and tag preferences of a reader.

    Lists are kept sorted by weight, highest first.
    """

    categories: list[CategoryWeight] = Field(default_factory=list)
    tags: list[TagWeight] = Field(default_factory=list)

    @field_validator("categories", "tags")
    @classmethod
    def sort_by_weight(
        cls, value: list[CategoryWeight] | list[TagWeight]
    ) -> list[CategoryWeight] | list[TagWeight]:
        """Order entries by descending weight (stable for ties)."""
        return sorted(value, key=lambda entry: -entry.weight)

    @property
    def category_names(self) -> list[str]:
        """Preferred category names in rank order."""
        return [c.category for c in self.categories]

    @property
    def tag_names(self) -> list[str]:
        """Preferred tag names in rank order."""
        return [t.tag for t in self.tags]

    @property
    def is_empty(self) -> bool:
        """Whether the reader has no known preferences."""
        return not self.categories and not self.tags


class CTRStats(StrictBaseModel):
    """Impression and click telemetry for a work."""

    work_id: Annotated[str, Field(min_length=1)]
    impression_count: Count = 0
    unique_clicks: Count = 0
    total_clicks: Count = 0
    ctr_unique: Annotated[float, Field(ge=0.0)] = 0.0
    ctr_total: Annotated[float, Field(ge=0.0)] = 0.0
    avg_intersection_ratio: Annotated[float, Field(ge=0.0, le=1.0)] = 0.0
    avg_display_duration: Annotated[float, Field(ge=0.0)] = 0.0


@dataclass(frozen=True)
class ContentAttributes:
    """Content features that feed the content quality score.

    Attributes:
        content_length: Body length in characters.
        has_image: Whether the work has a cover image.
        title_length: Title length in characters.
        description_length: Description length in characters.
    """

    content_length: int = 0
    has_image: bool = False
    title_length: int = 0
    description_length: int = 0


@dataclass(frozen=True)
class QualityScoreComponents:
    """Breakdown of a work's quality score.

    Attributes:
        ctr_score: Log-scaled click-through score.
        engagement_score: Display duration, visibility and exposure score.
        content_quality_score: Length, image, title and description score.
        consistency_score: Placeholder consistency signal.
        overall_quality_score: Weighted total, rounded to 2 decimals.
    """

    ctr_score: float
    engagement_score: float
    content_quality_score: float
    consistency_score: float
    overall_quality_score: float

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary of component name to value.
        """
        return {
            "ctr_score": self.ctr_score,
            "engagement_score": self.engagement_score,
            "content_quality_score": self.content_quality_score,
            "consistency_score": self.consistency_score,
            "overall_quality_score": self.overall_quality_score,
        }


@dataclass(frozen=True)
class StatsSnapshot:
    """View/like/comment counts frozen at scoring time."""

    views: int
    likes: int
    comments: int

    @classmethod
    def of(cls, work: WorkCandidate) -> "StatsSnapshot":
        """Capture the current stats of a work."""
        return cls(views=work.views, likes=work.likes, comments=work.comments)


class MatchFlags(StrictBaseModel):
    """Diagnostic flags set while computing the behavior score."""

    is_followed_author: bool = False
    is_category_match: bool = False
    is_tag_match: bool = False
    is_new_work: bool = False


class ScoredWork(StrictBaseModel):
    """A work with its snapshot stats and computed scores."""

    work: WorkCandidate
    snapshot_views: Count = 0
    snapshot_likes: Count = 0
    snapshot_comments: Count = 0
    quality_score: Score = 0.0
    user_behavior_score: Score = 0.0
    recommendation_score: Score = 0.0
    flags: MatchFlags = Field(default_factory=MatchFlags)
    is_challenge: bool = False
    challenge_reason: ChallengeReason | None = None

    @property
    def work_id(self) -> str:
        """Identifier of the underlying work."""
        return self.work.work_id


def _ensure_unique_ids(works: list[ScoredWork]) -> None:
    seen: set[str] = set()
    for scored in works:
        if scored.work_id in seen:
            msg = f"Duplicate work_id in result: {scored.work_id}"
            raise ValueError(msg)
        seen.add(scored.work_id)


class RecommendationResult(StrictBaseModel):
    """Ranked recommendations served to a reader."""

    works: list[ScoredWork] = Field(default_factory=list)
    strategy: Strategy
    source: str
    total: Count = 0

    @model_validator(mode="after")
    def validate_works(self) -> "RecommendationResult":
        """Reject duplicate works and a total that disagrees with the list."""
        _ensure_unique_ids(self.works)
        if self.total != len(self.works):
            msg = f"total ({self.total}) must equal len(works) ({len(self.works)})"
            raise ValueError(msg)
        return self


class MoreRecommendations(StrictBaseModel):
    """One "load more" page."""

    works: list[ScoredWork] = Field(default_factory=list)
    has_more: bool = False
    strategy: Strategy
    source: str
    offset: Count = 0
    next_offset: Count = 0

    @model_validator(mode="after")
    def validate_works(self) -> "MoreRecommendations":
        """Reject duplicate works within a page."""
        _ensure_unique_ids(self.works)
        return self


class RecommendationFailure(StrictBaseModel):
    """User-facing failure value returned instead of a stack trace."""

    error: Annotated[str, Field(min_length=1)]
    error_class: RecommenderErrorClass = RecommenderErrorClass.PIPELINE_FAILURE
