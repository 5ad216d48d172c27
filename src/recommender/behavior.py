"""Reader-specific behavior score for a work."""

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime

from src.config.schemas.recommender import RankingConfig
from src.recommender.clock import as_utc, utc_now
from src.recommender.constants import (
    CATEGORY_MATCH_BONUS,
    COMMENTS_FOR_FULL_SCORE,
    FOLLOWED_AUTHOR_BONUS,
    FRESHNESS_BONUS,
    LIKES_FOR_FULL_SCORE,
    MAX_SCORE,
    MIN_SCORE,
    TAG_MATCH_BONUS,
    VIEWS_FOR_FULL_SCORE,
)
from src.recommender.models import (
    MatchFlags,
    StatsSnapshot,
    UserPreferenceProfile,
    WorkCandidate,
)


@dataclass(frozen=True)
class BehaviorScore:
    """Behavior score and the flags that explain it."""

    score: float
    flags: MatchFlags


class BehaviorScoreCalculator:
    """Scores a work's affinity to one reader on a 0-10 scale.

    Scoring formula (additive, clamped to [0, 10]):
        min(10, views/1000) * 0.3 + min(10, likes/100) * 0.5
        + min(10, comments/20) * 0.2
        + 2 category match + 1.5 tag match + 1 fresh + 1 followed author

    Stats come from the snapshot taken at scoring time, never from the
    live work.
    """

    def __init__(
        self,
        config: RankingConfig | None = None,
        now: datetime | None = None,
    ) -> None:
        """Initialize the calculator.

        Args:
            config: Ranking configuration (freshness window).
            now: Reference time for freshness.
        """
        self._config = config or RankingConfig()
        self._now = as_utc(now or utc_now())

    def score(
        self,
        work: WorkCandidate,
        snapshot: StatsSnapshot,
        preferences: UserPreferenceProfile,
        followed_author_ids: Collection[str] = frozenset(),
    ) -> BehaviorScore:
        """Compute the behavior score for a work.

        Args:
            work: Work being scored.
            snapshot: Stats frozen at scoring time.
            preferences: Reader's preference profile.
            followed_author_ids: Authors the reader follows.

        Returns:
            BehaviorScore with the rounded score and match flags.
        """
        score = (
            min(MAX_SCORE, snapshot.views / VIEWS_FOR_FULL_SCORE) * 0.3
            + min(MAX_SCORE, snapshot.likes / LIKES_FOR_FULL_SCORE) * 0.5
            + min(MAX_SCORE, snapshot.comments / COMMENTS_FOR_FULL_SCORE) * 0.2
        )

        preferred_categories = set(preferences.category_names)
        preferred_tags = set(preferences.tag_names)

        is_category_match = work.category is not None and work.category in preferred_categories
        is_tag_match = any(tag in preferred_tags for tag in work.tags)
        is_new_work = self._is_fresh(work)
        is_followed_author = work.user_id is not None and work.user_id in followed_author_ids

        if is_category_match:
            score += CATEGORY_MATCH_BONUS
        if is_tag_match:
            score += TAG_MATCH_BONUS
        if is_new_work:
            score += FRESHNESS_BONUS
        if is_followed_author:
            score += FOLLOWED_AUTHOR_BONUS

        clamped = min(MAX_SCORE, max(MIN_SCORE, score))

        return BehaviorScore(
            score=round(clamped, 2),
            flags=MatchFlags(
                is_followed_author=is_followed_author,
                is_category_match=is_category_match,
                is_tag_match=is_tag_match,
                is_new_work=is_new_work,
            ),
        )

    def _is_fresh(self, work: WorkCandidate) -> bool:
        if work.created_at is None:
            return False
        age_days = (self._now - as_utc(work.created_at)).total_seconds() / (24 * 60 * 60)
        return age_days <= self._config.fresh_days
