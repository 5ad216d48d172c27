"""In-memory repository gateway over a JSON catalog.

Serves every WorkRepository query from a loaded catalog of works, reader
interactions, follows, reading progress and CTR telemetry. Used by the
CLI and by tests; production deployments plug in their own gateway.
"""

from collections.abc import Callable, Collection
from datetime import datetime
from pathlib import Path

import structlog
from pydantic import Field

from src.config.schemas.recommender import QualityConfig
from src.data_model import StrictBaseModel
from src.recommender.challenge import select_challenge_works
from src.recommender.clock import as_utc, utc_now
from src.recommender.models import (
    ChallengeCandidate,
    CTRStats,
    Interaction,
    UserBehaviorProfile,
    UserPreferenceProfile,
    WorkCandidate,
)
from src.recommender.new_works import select_quality_new_works
from src.recommender.preferences import (
    count_behavior,
    derive_preference_profile,
    interacted_work_ids,
)


logger = structlog.get_logger()


class Catalog(StrictBaseModel):
    """Everything the in-memory gateway can answer from.

    Attributes:
        works: Published works.
        interactions: Reader interaction events.
        follows: Followed author ids keyed by reader id.
        reading_progress: Progress percentage per work, keyed by reader id.
        ctr_stats: Impression telemetry per work.
    """

    works: list[WorkCandidate] = Field(default_factory=list)
    interactions: list[Interaction] = Field(default_factory=list)
    follows: dict[str, list[str]] = Field(default_factory=dict)
    reading_progress: dict[str, dict[str, float]] = Field(default_factory=dict)
    ctr_stats: list[CTRStats] = Field(default_factory=list)


def _created_ts(work: WorkCandidate) -> float:
    return as_utc(work.created_at).timestamp() if work.created_at else 0.0


class InMemoryWorkRepository:
    """WorkRepository backed by a Catalog."""

    def __init__(
        self,
        catalog: Catalog,
        clock: Callable[[], datetime] = utc_now,
        quality_config: QualityConfig | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            catalog: Source data.
            clock: Returns the reference time for time windows.
            quality_config: Settings for quality-filtered new works.
        """
        self._catalog = catalog
        self._clock = clock
        self._quality_config = quality_config or QualityConfig()
        self._works_by_id = {w.work_id: w for w in catalog.works}
        self._ctr_by_id = {s.work_id: s for s in catalog.ctr_stats}

    @classmethod
    def from_json(
        cls,
        path: Path,
        clock: Callable[[], datetime] = utc_now,
        quality_config: QualityConfig | None = None,
    ) -> "InMemoryWorkRepository":
        """Load a catalog from a JSON file.

        Args:
            path: Catalog file path.
            clock: Reference time provider.
            quality_config: Settings for quality-filtered new works.

        Returns:
            Repository serving the catalog.

        Raises:
            FileNotFoundError: If the file does not exist.
            pydantic.ValidationError: If the catalog is malformed.
        """
        catalog = Catalog.model_validate_json(path.read_text(encoding="utf-8"))
        logger.info(
            "catalog_loaded",
            component="repository",
            path=str(path),
            works=len(catalog.works),
            interactions=len(catalog.interactions),
        )
        return cls(catalog, clock=clock, quality_config=quality_config)

    @property
    def catalog(self) -> Catalog:
        """The catalog being served."""
        return self._catalog

    def fetch_followed_authors_works(
        self,
        reader_id: str,
        limit: int,
        exclude_work_ids: Collection[str] = (),
    ) -> list[WorkCandidate]:
        """Newest works by followed authors."""
        followed = self.fetch_followed_author_ids(reader_id)
        if not followed:
            return []
        works = [
            w
            for w in self._catalog.works
            if w.user_id in followed and w.work_id not in exclude_work_ids
        ]
        works.sort(key=_created_ts, reverse=True)
        return works[:limit]

    def fetch_category_tag_matched_works(
        self,
        reader_id: str,
        limit: int,
        exclude_work_ids: Collection[str] = (),
    ) -> list[WorkCandidate]:
        """Works in the reader's categories that share a preferred tag.

        Either filter is skipped when the reader has no entries for it.
        The reader's own works are excluded.
        """
        preferences = self.fetch_user_preference_profile(reader_id)
        if preferences.is_empty:
            return []

        categories = set(preferences.category_names)
        tags = set(preferences.tag_names)
        works = [
            w
            for w in self._catalog.works
            if w.user_id != reader_id
            and w.work_id not in exclude_work_ids
            and (not categories or w.category in categories)
            and (not tags or any(t in tags for t in w.tags))
        ]
        works.sort(key=lambda w: (-w.views, -w.likes))
        return works[:limit]

    def fetch_popular_works(self, limit: int) -> list[WorkCandidate]:
        """Most viewed works, then most liked, then newest."""
        works = sorted(
            self._catalog.works,
            key=lambda w: (-w.views, -w.likes, -_created_ts(w)),
        )
        return works[:limit]

    def fetch_quality_new_works(self, limit: int) -> list[WorkCandidate]:
        """Recent works picked by the new-work quality filter."""
        return select_quality_new_works(
            self._catalog.works,
            self._ctr_by_id,
            limit,
            now=self._clock(),
            config=self._quality_config,
        )

    def fetch_challenge_works(
        self,
        reader_id: str,
        exclude_categories: list[str],
        exclude_tags: list[str],
        limit: int,
    ) -> list[ChallengeCandidate]:
        """Off-profile works the reader has never interacted with."""
        return select_challenge_works(
            self._catalog.works,
            reader_id,
            exclude_categories,
            exclude_tags,
            self.fetch_followed_author_ids(reader_id),
            interacted_work_ids(self._catalog.interactions, reader_id),
            limit,
            now=self._clock(),
        )

    def fetch_user_behavior_profile(self, reader_id: str) -> UserBehaviorProfile:
        """All-time activity counters for the reader."""
        return count_behavior(
            self._catalog.interactions,
            reader_id,
            follows_count=len(self._catalog.follows.get(reader_id, [])),
        )

    def fetch_user_preference_profile(self, reader_id: str) -> UserPreferenceProfile:
        """Preferences derived from the trailing 30-day window."""
        return derive_preference_profile(
            self._catalog.interactions,
            self._works_by_id,
            reader_id,
            now=self._clock(),
        )

    def fetch_followed_author_ids(self, reader_id: str) -> set[str]:
        """Author ids the reader follows."""
        return set(self._catalog.follows.get(reader_id, []))

    def fetch_reading_progress(self, reader_id: str) -> dict[str, float]:
        """Reading progress percentage per work."""
        return dict(self._catalog.reading_progress.get(reader_id, {}))

    def fetch_ctr_stats(self, work_ids: list[str]) -> dict[str, CTRStats]:
        """Telemetry for the requested works that have any."""
        return {
            work_id: self._ctr_by_id[work_id]
            for work_id in work_ids
            if work_id in self._ctr_by_id
        }
