"""Protocol interfaces for the recommender's collaborators."""

from collections.abc import Collection
from typing import Protocol, runtime_checkable

from src.recommender.models import (
    ChallengeCandidate,
    CTRStats,
    UserBehaviorProfile,
    UserPreferenceProfile,
    WorkCandidate,
)


@runtime_checkable
class WorkRepository(Protocol):
    """Read-only gateway to works, reader activity and telemetry.

    Implementations may raise any exception on failure; the engine treats
    every gateway error as an empty or default answer for that call.
    """

    def fetch_followed_authors_works(
        self,
        reader_id: str,
        limit: int,
        exclude_work_ids: Collection[str] = (),
    ) -> list[WorkCandidate]:
        """Newest works by authors the reader follows."""
        ...

    def fetch_category_tag_matched_works(
        self,
        reader_id: str,
        limit: int,
        exclude_work_ids: Collection[str] = (),
    ) -> list[WorkCandidate]:
        """Works matching the reader's preferred categories and tags."""
        ...

    def fetch_popular_works(self, limit: int) -> list[WorkCandidate]:
        """Globally popular works."""
        ...

    def fetch_quality_new_works(self, limit: int) -> list[WorkCandidate]:
        """Recent works that pass the new-work quality filter."""
        ...

    def fetch_challenge_works(
        self,
        reader_id: str,
        exclude_categories: list[str],
        exclude_tags: list[str],
        limit: int,
    ) -> list[ChallengeCandidate]:
        """Off-profile works the reader has never interacted with."""
        ...

    def fetch_user_behavior_profile(self, reader_id: str) -> UserBehaviorProfile:
        """Activity counters for the reader."""
        ...

    def fetch_user_preference_profile(self, reader_id: str) -> UserPreferenceProfile:
        """Ranked category and tag preferences for the reader."""
        ...

    def fetch_followed_author_ids(self, reader_id: str) -> set[str]:
        """User ids of authors the reader follows."""
        ...

    def fetch_reading_progress(self, reader_id: str) -> dict[str, float]:
        """Reading progress percentage keyed by work id."""
        ...

    def fetch_ctr_stats(self, work_ids: list[str]) -> dict[str, CTRStats]:
        """Impression telemetry keyed by work id; missing ids have none."""
        ...


@runtime_checkable
class RecommendationCache(Protocol):
    """Key-value cache with per-entry time-to-live.

    Writes are upserts; concurrent writers of the same key are last-writer-wins.
    """

    def get(self, key: str) -> object | None:
        """Return the cached value, or None when absent or expired."""
        ...

    def set(self, key: str, value: object, ttl: float) -> None:
        """Store a value for ``ttl`` seconds."""
        ...
