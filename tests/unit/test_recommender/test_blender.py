"""Unit tests for challenge blending."""

from unittest.mock import MagicMock

from src.recommender.blender import DiversityBlender, challenge_slots, interleave
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import ChallengeCandidate, ChallengeReason
from src.recommender.quality import QualityScoreEngine
from src.recommender.ranker import WorkRanker
from tests.helpers.factories import (
    make_preferences,
    make_repository,
    make_scored,
    make_work,
)
from tests.helpers.time import FIXED_NOW


def _challenges(count: int, prefix: str = "c") -> list[ChallengeCandidate]:
    return [
        ChallengeCandidate(work=make_work(f"{prefix}{i}"), reason=ChallengeReason.TRENDING)
        for i in range(count)
    ]


def _make_blender(repo, metrics=None):  # type: ignore[no-untyped-def]
    metrics = metrics or RecommendationMetrics()
    ranker = WorkRanker(
        MagicMock(spec=QualityScoreEngine), metrics=metrics, now=FIXED_NOW
    )
    return DiversityBlender(repo, ranker, metrics=metrics, request_id="test")


class TestChallengeSlots:
    """Tests for challenge slot counts."""

    def test_one_slot_per_five(self) -> None:
        """ceil(target / 5) slots."""
        assert challenge_slots(72) == 15
        assert challenge_slots(10) == 2
        assert challenge_slots(11) == 3

    def test_zero_target(self) -> None:
        """No target, no slots."""
        assert challenge_slots(0) == 0


class TestInterleave:
    """Tests for positional interleaving."""

    def test_every_eighth_slot_is_a_challenge(self) -> None:
        """Slots 8, 16, 24 ... hold challenge works."""
        regular = [make_scored(f"r{i}") for i in range(57)]
        challenge = [make_scored(f"c{i}", is_challenge=True) for i in range(15)]

        result = interleave(regular, challenge, 72)

        assert len(result) == 72
        for index in range(7, 64, 8):
            assert result[index].is_challenge
        assert sum(1 for w in result if w.is_challenge) == 15

    def test_regular_order_preserved(self) -> None:
        """Regular works keep their rank order."""
        regular = [make_scored(f"r{i}") for i in range(20)]
        challenge = [make_scored("c0", is_challenge=True)]

        result = interleave(regular, challenge, 21)

        regular_ids = [w.work_id for w in result if not w.is_challenge]
        assert regular_ids == [f"r{i}" for i in range(20)]

    def test_drains_regular_when_challenges_run_out(self) -> None:
        """Missing challenges are replaced by regular works."""
        regular = [make_scored(f"r{i}") for i in range(30)]

        result = interleave(regular, [], 20)

        assert [w.work_id for w in result] == [f"r{i}" for i in range(20)]

    def test_drains_challenges_when_regular_runs_out(self) -> None:
        """Remaining slots are filled by challenges."""
        regular = [make_scored("r0")]
        challenge = [make_scored(f"c{i}", is_challenge=True) for i in range(3)]

        result = interleave(regular, challenge, 10)

        assert [w.work_id for w in result] == ["r0", "c0", "c1", "c2"]


class TestDiversityBlender:
    """Tests for repository-backed blending."""

    def test_single_page_skips_blending(self) -> None:
        """Targets up to one page are truncated without challenges."""
        repo = make_repository()
        regular = [make_scored(f"r{i}") for i in range(20)]

        result = _make_blender(repo).blend(regular, "reader-1", 9)

        assert [w.work_id for w in result] == [f"r{i}" for i in range(9)]
        repo.fetch_challenge_works.assert_not_called()

    def test_blends_challenges_for_full_target(self) -> None:
        """72 works hold 15 challenges from an over-fetched pool."""
        repo = make_repository(fetch_challenge_works=_challenges(30))
        metrics = RecommendationMetrics()
        regular = [make_scored(f"r{i}") for i in range(80)]
        preferences = make_preferences({"fantasy": 5}, {"magic": 2})

        result = _make_blender(repo, metrics).blend(
            regular, "reader-1", 72, preferences=preferences
        )

        assert len(result) == 72
        assert sum(1 for w in result if w.is_challenge) == 15
        assert result[7].is_challenge
        assert len({w.work_id for w in result}) == 72
        assert metrics.challenge_insertions_total == 15
        repo.fetch_challenge_works.assert_called_once_with(
            "reader-1", ["fantasy"], ["magic"], 30
        )

    def test_challenges_deduplicated_against_regular(self) -> None:
        """A challenge already in the regular list is skipped."""
        repo = make_repository(
            fetch_challenge_works=[
                ChallengeCandidate(work=make_work("r0"), reason=ChallengeReason.TRENDING),
                *_challenges(2),
            ]
        )
        regular = [make_scored(f"r{i}") for i in range(20)]

        result = _make_blender(repo).blend(regular, "reader-1", 20)

        ids = [w.work_id for w in result]
        assert len(ids) == len(set(ids))
        assert {w.work_id for w in result if w.is_challenge} == {"c0", "c1"}

    def test_excluded_challenges_skipped(self) -> None:
        """Challenges the caller already has are not reinserted."""
        repo = make_repository(fetch_challenge_works=_challenges(4))
        regular = [make_scored(f"r{i}") for i in range(20)]

        result = _make_blender(repo).blend(
            regular, "reader-1", 20, exclude_work_ids={"c0"}
        )

        assert "c0" not in {w.work_id for w in result}

    def test_challenge_fetch_failure_returns_regular(self) -> None:
        """A failing challenge fetch leaves the regular list."""
        repo = make_repository()
        repo.fetch_challenge_works.side_effect = RuntimeError("timeout")
        regular = [make_scored(f"r{i}") for i in range(30)]

        result = _make_blender(repo).blend(regular, "reader-1", 20)

        assert [w.work_id for w in result] == [f"r{i}" for i in range(20)]

    def test_short_regular_list_drains_challenges(self) -> None:
        """Few regular works still produce a list without duplicates."""
        repo = make_repository(fetch_challenge_works=_challenges(6))
        regular = [make_scored("r0"), make_scored("r1")]

        result = _make_blender(repo).blend(regular, "reader-1", 12)

        assert len(result) <= 12
        assert [w.work_id for w in result][:2] == ["r0", "r1"]
        assert sum(1 for w in result if w.is_challenge) == 3
