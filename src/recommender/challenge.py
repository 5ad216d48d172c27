"""Sourcing of challenge works from outside a reader's affinity profile."""

import math
from collections.abc import Collection, Iterable
from datetime import UTC, datetime, timedelta

from src.recommender.clock import as_utc, utc_now
from src.recommender.constants import (
    CHALLENGE_AUTHOR_MIN_VIEWS,
    CHALLENGE_CATEGORY_MIN_VIEWS,
    CHALLENGE_TRENDING_DAYS,
    CHALLENGE_TRENDING_MIN_LIKES,
)
from src.recommender.models import ChallengeCandidate, ChallengeReason, WorkCandidate


_EPOCH = datetime.min.replace(tzinfo=UTC)


def _is_off_profile(
    work: WorkCandidate,
    exclude_categories: Collection[str],
    exclude_tags: Collection[str],
) -> bool:
    if work.category is not None and work.category in exclude_categories:
        return False
    return not any(tag in exclude_tags for tag in work.tags)


def unexplored_category_works(
    works: Iterable[WorkCandidate],
    exclude_categories: Collection[str],
    exclude_tags: Collection[str],
    excluded_ids: Collection[str],
    limit: int,
) -> list[WorkCandidate]:
    """Works outside the reader's categories and tags, most liked first."""
    pool = [
        w
        for w in works
        if w.work_id not in excluded_ids
        and w.views > CHALLENGE_CATEGORY_MIN_VIEWS
        and _is_off_profile(w, exclude_categories, exclude_tags)
    ]
    pool.sort(key=lambda w: -w.likes)
    return pool[:limit]


def new_author_works(
    works: Iterable[WorkCandidate],
    reader_id: str,
    followed_author_ids: Collection[str],
    excluded_ids: Collection[str],
    limit: int,
) -> list[WorkCandidate]:
    """Works by authors the reader does not follow, newest first."""
    pool = [
        w
        for w in works
        if w.work_id not in excluded_ids
        and w.user_id not in followed_author_ids
        and w.user_id != reader_id
        and w.views > CHALLENGE_AUTHOR_MIN_VIEWS
    ]
    pool.sort(
        key=lambda w: as_utc(w.created_at) if w.created_at else _EPOCH,
        reverse=True,
    )
    return pool[:limit]


def trending_works(
    works: Iterable[WorkCandidate],
    reader_id: str,
    excluded_ids: Collection[str],
    limit: int,
    now: datetime,
) -> list[WorkCandidate]:
    """Recently updated, well-liked works, by likes then views."""
    since = now - timedelta(days=CHALLENGE_TRENDING_DAYS)
    pool = [
        w
        for w in works
        if w.work_id not in excluded_ids
        and w.user_id != reader_id
        and w.updated_at is not None
        and as_utc(w.updated_at) >= since
        and w.likes > CHALLENGE_TRENDING_MIN_LIKES
    ]
    pool.sort(key=lambda w: (-w.likes, -w.views))
    return pool[:limit]


def select_challenge_works(
    works: Iterable[WorkCandidate],
    reader_id: str,
    exclude_categories: Collection[str],
    exclude_tags: Collection[str],
    followed_author_ids: Collection[str],
    interacted_ids: Collection[str],
    limit: int,
    now: datetime | None = None,
) -> list[ChallengeCandidate]:
    """Pick discovery works the reader has never interacted with.

    Three pools of ``ceil(limit / 3)`` each, in this order:
    unexplored categories (only when the reader has a profile), new
    authors (only when the reader follows someone) and trending works.
    The merged list keeps the first occurrence of each work and is capped
    at ``limit``.

    Args:
        works: Catalog works.
        reader_id: Reader the challenges are for.
        exclude_categories: Reader's preferred categories.
        exclude_tags: Reader's preferred tags.
        followed_author_ids: Authors the reader follows.
        interacted_ids: Works the reader liked, bookmarked or viewed.
        limit: Maximum challenge works.
        now: Reference time for the trending window.

    Returns:
        Challenge candidates tagged with their reason.
    """
    if limit <= 0:
        return []
    catalog = list(works)
    now = as_utc(now or utc_now())
    per_pool = math.ceil(limit / 3)
    picked: list[ChallengeCandidate] = []

    if exclude_categories or exclude_tags:
        picked.extend(
            ChallengeCandidate(work=w, reason=ChallengeReason.NEW_CATEGORY)
            for w in unexplored_category_works(
                catalog, exclude_categories, exclude_tags, interacted_ids, per_pool
            )
        )

    if followed_author_ids:
        picked.extend(
            ChallengeCandidate(work=w, reason=ChallengeReason.NEW_AUTHOR)
            for w in new_author_works(
                catalog, reader_id, followed_author_ids, interacted_ids, per_pool
            )
        )

    picked.extend(
        ChallengeCandidate(work=w, reason=ChallengeReason.TRENDING)
        for w in trending_works(catalog, reader_id, interacted_ids, per_pool, now)
    )

    seen: set[str] = set()
    unique: list[ChallengeCandidate] = []
    for candidate in picked:
        if candidate.work.work_id in seen:
            continue
        seen.add(candidate.work.work_id)
        unique.append(candidate)
    return unique[:limit]
