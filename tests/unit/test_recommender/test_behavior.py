"""Unit tests for the behavior score calculator."""

from src.config.schemas.recommender import RankingConfig
from src.recommender.behavior import BehaviorScore, BehaviorScoreCalculator
from src.recommender.models import StatsSnapshot, UserPreferenceProfile, WorkCandidate
from tests.helpers.factories import make_preferences, make_work
from tests.helpers.time import FIXED_NOW, days_ago


_NO_PREFERENCES = UserPreferenceProfile()


def _score(
    work: WorkCandidate,
    preferences: UserPreferenceProfile = _NO_PREFERENCES,
    followed: frozenset[str] = frozenset(),
    snapshot: StatsSnapshot | None = None,
) -> BehaviorScore:
    calculator = BehaviorScoreCalculator(now=FIXED_NOW)
    return calculator.score(
        work, snapshot or StatsSnapshot.of(work), preferences, followed
    )


class TestBehaviorStats:
    """Tests for the stat-driven part of the score."""

    def test_stats_only(self) -> None:
        """1000 views, 100 likes and 20 comments earn 1.0."""
        work = make_work(views=1000, likes=100, comments=20)

        result = _score(work)

        assert result.score == 1.0
        assert not result.flags.is_category_match

    def test_zero_stats(self) -> None:
        """A brand-new, unmatched work scores zero."""
        assert _score(make_work()).score == 0.0

    def test_uses_snapshot_not_live_counts(self) -> None:
        """Stats come from the snapshot taken at scoring time."""
        work = make_work(views=5000, likes=500, comments=100)

        result = _score(work, snapshot=StatsSnapshot(views=0, likes=0, comments=0))

        assert result.score == 0.0


class TestBehaviorBonuses:
    """Tests for match and freshness bonuses."""

    def test_all_bonuses(self) -> None:
        """Category, tag, freshness and follow bonuses add 5.5."""
        work = make_work(
            category="fantasy",
            tags=["dragons"],
            created_at=days_ago(3),
            user_id="author-9",
            views=1000,
            likes=100,
            comments=20,
        )
        preferences = make_preferences({"fantasy": 10}, {"dragons": 5})

        result = _score(work, preferences, frozenset({"author-9"}))

        assert result.score == 6.5
        assert result.flags.is_category_match
        assert result.flags.is_tag_match
        assert result.flags.is_new_work
        assert result.flags.is_followed_author

    def test_stale_work_gets_no_freshness_bonus(self) -> None:
        """Works older than the freshness window are not new."""
        result = _score(make_work(created_at=days_ago(8)))

        assert not result.flags.is_new_work
        assert result.score == 0.0

    def test_freshness_window_is_configurable(self) -> None:
        """fresh_days controls the freshness bonus."""
        calculator = BehaviorScoreCalculator(RankingConfig(fresh_days=30), now=FIXED_NOW)
        work = make_work(created_at=days_ago(20))

        result = calculator.score(work, StatsSnapshot.of(work), _NO_PREFERENCES)

        assert result.score == 1.0

    def test_clamped_to_ten(self) -> None:
        """Huge stats plus every bonus still cap at 10."""
        work = make_work(
            category="fantasy",
            tags=["dragons"],
            created_at=days_ago(1),
            user_id="author-9",
            views=10_000_000,
            likes=1_000_000,
            comments=100_000,
        )
        preferences = make_preferences({"fantasy": 1}, {"dragons": 1})

        assert _score(work, preferences, frozenset({"author-9"})).score == 10.0

    def test_score_rounded_to_two_decimals(self) -> None:
        """The score carries at most two decimals."""
        result = _score(make_work(views=333, likes=7, comments=1))

        assert result.score == round(result.score, 2)
