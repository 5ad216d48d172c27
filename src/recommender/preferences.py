"""Derivation of reader profiles from raw interaction events."""

from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta

from src.recommender.clock import as_utc, utc_now
from src.recommender.constants import (
    MAX_PREFERRED_CATEGORIES,
    MAX_PREFERRED_TAGS,
    PREFERENCE_WINDOW_DAYS,
    REPEAT_VIEW_BONUS_MAX_VIEWS,
    REPEAT_VIEW_BONUS_PER_VIEW,
)
from src.recommender.models import (
    CategoryWeight,
    Interaction,
    InteractionType,
    TagWeight,
    UserBehaviorProfile,
    UserPreferenceProfile,
    WorkCandidate,
)


# Weight of one interaction toward the work's categories and tags
INTERACTION_WEIGHTS: dict[InteractionType, int] = {
    InteractionType.LIKE: 10,
    InteractionType.BOOKMARK: 15,
    InteractionType.COMMENT: 8,
}
VIEW_BASE_WEIGHT = 3

# Interactions that mark a work as already seen for discovery purposes
SEEN_INTERACTIONS = frozenset(
    {InteractionType.LIKE, InteractionType.BOOKMARK, InteractionType.VIEW}
)


def work_interaction_weights(
    interactions: Iterable[Interaction],
    reader_id: str,
    now: datetime | None = None,
    window_days: int = PREFERENCE_WINDOW_DAYS,
) -> dict[str, int]:
    """Weight each work by the reader's recent interactions with it.

    Views earn a base weight plus a repeat bonus of 2 per extra view,
    capped at 3 extra views.

    Args:
        interactions: Interaction events (any reader).
        reader_id: Reader whose events count.
        now: Reference time for the trailing window.
        window_days: Window length in days.

    Returns:
        Mapping of work id to weight, in first-seen order.
    """
    now = as_utc(now or utc_now())
    since = now - timedelta(days=window_days)

    weights: dict[str, int] = {}
    view_counts: Counter[str] = Counter()
    for event in interactions:
        if event.user_id != reader_id or as_utc(event.occurred_at) < since:
            continue
        if event.kind == InteractionType.VIEW:
            view_counts[event.work_id] += 1
            weights.setdefault(event.work_id, 0)
        elif event.kind in INTERACTION_WEIGHTS:
            weights[event.work_id] = (
                weights.get(event.work_id, 0) + INTERACTION_WEIGHTS[event.kind]
            )

    for work_id, count in view_counts.items():
        repeat_bonus = (
            min(count - 1, REPEAT_VIEW_BONUS_MAX_VIEWS) * REPEAT_VIEW_BONUS_PER_VIEW
        )
        weights[work_id] += VIEW_BASE_WEIGHT + repeat_bonus

    return weights


def derive_preference_profile(
    interactions: Iterable[Interaction],
    works: Mapping[str, WorkCandidate],
    reader_id: str,
    now: datetime | None = None,
    window_days: int = PREFERENCE_WINDOW_DAYS,
) -> UserPreferenceProfile:
    """Build a reader's ranked category and tag preferences.

    Each interacted work adds its weight to its category and to every tag.
    The top 5 categories and top 10 tags are kept.

    Args:
        interactions: Interaction events.
        works: Catalog keyed by work id; unknown ids are skipped.
        reader_id: Reader to profile.
        now: Reference time for the trailing window.
        window_days: Window length in days.

    Returns:
        UserPreferenceProfile, empty when the reader has no recent activity.
    """
    weights = work_interaction_weights(interactions, reader_id, now, window_days)

    category_weights: dict[str, int] = {}
    tag_weights: dict[str, int] = {}
    for work_id, weight in weights.items():
        work = works.get(work_id)
        if work is None:
            continue
        if work.category:
            category_weights[work.category] = (
                category_weights.get(work.category, 0) + weight
            )
        for tag in work.tags:
            tag_weights[tag] = tag_weights.get(tag, 0) + weight

    top_categories = sorted(category_weights.items(), key=lambda kv: -kv[1])
    top_tags = sorted(tag_weights.items(), key=lambda kv: -kv[1])

    return UserPreferenceProfile(
        categories=[
            CategoryWeight(category=name, weight=weight)
            for name, weight in top_categories[:MAX_PREFERRED_CATEGORIES]
        ],
        tags=[
            TagWeight(tag=name, weight=weight)
            for name, weight in top_tags[:MAX_PREFERRED_TAGS]
        ],
    )


def count_behavior(
    interactions: Iterable[Interaction],
    reader_id: str,
    follows_count: int = 0,
) -> UserBehaviorProfile:
    """Count all-time interactions of a reader by kind.

    Args:
        interactions: Interaction events.
        reader_id: Reader to count for.
        follows_count: Number of authors the reader follows.

    Returns:
        UserBehaviorProfile with per-kind counters.
    """
    counts = Counter(e.kind for e in interactions if e.user_id == reader_id)
    return UserBehaviorProfile(
        likes_count=counts[InteractionType.LIKE],
        bookmarks_count=counts[InteractionType.BOOKMARK],
        views_count=counts[InteractionType.VIEW],
        shares_count=counts[InteractionType.SHARE],
        comments_count=counts[InteractionType.COMMENT],
        follows_count=follows_count,
    )


def interacted_work_ids(interactions: Iterable[Interaction], reader_id: str) -> set[str]:
    """Works the reader has liked, bookmarked or viewed (any time)."""
    return {
        e.work_id
        for e in interactions
        if e.user_id == reader_id and e.kind in SEEN_INTERACTIONS
    }
