"""Unit tests for the in-memory repository gateway."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from src.recommender.models import Interaction, InteractionType
from src.recommender.protocols import WorkRepository
from src.recommender.repository import Catalog, InMemoryWorkRepository
from tests.helpers.factories import make_ctr_stats, make_work
from tests.helpers.time import FIXED_NOW, days_ago


def _like(reader_id: str, work_id: str, age_days: float = 1) -> Interaction:
    return Interaction(
        user_id=reader_id,
        work_id=work_id,
        kind=InteractionType.LIKE,
        occurred_at=days_ago(age_days),
    )


def _make_repository(**catalog: object) -> InMemoryWorkRepository:
    return InMemoryWorkRepository(
        Catalog(**catalog),  # type: ignore[arg-type]
        clock=lambda: FIXED_NOW,
    )


class TestCatalogLoading:
    """Tests for JSON catalog loading."""

    def test_satisfies_protocol(self) -> None:
        """The gateway implements WorkRepository."""
        assert isinstance(_make_repository(), WorkRepository)

    def test_from_json(self, tmp_path: Path) -> None:
        """Catalog files load into a serving repository."""
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps(
                {
                    "works": [{"work_id": "w1", "title": "Hello", "views": 3}],
                    "follows": {"reader-1": ["a1"]},
                }
            ),
            encoding="utf-8",
        )

        repo = InMemoryWorkRepository.from_json(path)

        assert repo.catalog.works[0].work_id == "w1"
        assert repo.fetch_followed_author_ids("reader-1") == {"a1"}

    def test_unknown_field_rejected(self, tmp_path: Path) -> None:
        """Catalog files are strict."""
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"works": [], "extra": 1}), encoding="utf-8")

        with pytest.raises(ValidationError):
            InMemoryWorkRepository.from_json(path)


class TestSourceQueries:
    """Tests for candidate source queries."""

    def test_followed_authors_newest_first(self) -> None:
        """Works by followed authors, newest first, honoring exclusions."""
        repo = _make_repository(
            works=[
                make_work("old", user_id="a1", created_at=days_ago(5)),
                make_work("new", user_id="a1", created_at=days_ago(1)),
                make_work("skip", user_id="a1", created_at=days_ago(2)),
                make_work("other", user_id="a2", created_at=days_ago(1)),
            ],
            follows={"reader-1": ["a1"]},
        )

        result = repo.fetch_followed_authors_works("reader-1", 10, {"skip"})

        assert [w.work_id for w in result] == ["new", "old"]

    def test_followed_authors_without_follows(self) -> None:
        """Readers who follow nobody get nothing."""
        repo = _make_repository(works=[make_work("w1")])

        assert repo.fetch_followed_authors_works("reader-1", 10) == []

    def test_category_tag_match(self) -> None:
        """Works in a preferred category sharing a preferred tag, most viewed first."""
        liked = make_work("liked", category="fantasy", tags=["magic"], user_id="a1")
        repo = _make_repository(
            works=[
                liked,
                make_work("match-low", category="fantasy", tags=["magic"], views=5),
                make_work("match-high", category="fantasy", tags=["magic"], views=50),
                make_work("wrong-tag", category="fantasy", tags=["war"], views=99),
                make_work(
                    "own", category="fantasy", tags=["magic"], user_id="reader-1"
                ),
            ],
            interactions=[_like("reader-1", "liked")],
        )

        result = repo.fetch_category_tag_matched_works("reader-1", 10, {"liked"})

        assert [w.work_id for w in result] == ["match-high", "match-low"]

    def test_category_tag_without_profile(self) -> None:
        """Readers without recent activity get nothing."""
        repo = _make_repository(works=[make_work("w1", category="fantasy")])

        assert repo.fetch_category_tag_matched_works("reader-1", 10) == []

    def test_popular_works(self) -> None:
        """Most viewed, then most liked."""
        repo = _make_repository(
            works=[
                make_work("a", views=10, likes=1),
                make_work("b", views=10, likes=5),
                make_work("c", views=99),
            ]
        )

        assert [w.work_id for w in repo.fetch_popular_works(2)] == ["c", "b"]

    def test_quality_new_works(self) -> None:
        """Recent viewed works come back through the new-work filter."""
        repo = _make_repository(
            works=[
                make_work("recent", created_at=days_ago(2), views=30),
                make_work("ancient", created_at=days_ago(90), views=300),
            ]
        )

        assert [w.work_id for w in repo.fetch_quality_new_works(5)] == ["recent"]

    def test_challenge_works_skip_interacted(self) -> None:
        """Challenge candidates exclude works the reader has liked."""
        repo = _make_repository(
            works=[
                make_work("seen", likes=20, updated_at=days_ago(1)),
                make_work("unseen", likes=20, updated_at=days_ago(1)),
            ],
            interactions=[_like("reader-1", "seen")],
        )

        result = repo.fetch_challenge_works("reader-1", [], [], 6)

        assert [c.work.work_id for c in result] == ["unseen"]


class TestReaderQueries:
    """Tests for reader profile queries."""

    def test_behavior_profile_includes_follows(self) -> None:
        """Counters include the number of followed authors."""
        repo = _make_repository(
            interactions=[_like("reader-1", "w1"), _like("reader-1", "w2")],
            follows={"reader-1": ["a1", "a2", "a3"]},
        )

        profile = repo.fetch_user_behavior_profile("reader-1")

        assert profile.likes_count == 2
        assert profile.total_actions == 5

    def test_reading_progress(self) -> None:
        """Progress is returned per reader."""
        repo = _make_repository(reading_progress={"reader-1": {"w1": 42.0}})

        assert repo.fetch_reading_progress("reader-1") == {"w1": 42.0}
        assert repo.fetch_reading_progress("reader-2") == {}

    def test_ctr_stats_only_for_known_ids(self) -> None:
        """Works without telemetry are absent."""
        repo = _make_repository(ctr_stats=[make_ctr_stats("w1")])

        assert set(repo.fetch_ctr_stats(["w1", "w2"])) == {"w1"}
