"""Quality-filtered selection of recently published works.

New works rarely have enough impressions for the full quality score, so
they get a lighter score: CTR and engagement when telemetry is reliable,
plus basic view/like/comment stats normalised for small numbers.
"""

import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta

from src.config.schemas.recommender import QualityConfig
from src.recommender.clock import as_utc, utc_now
from src.recommender.constants import (
    MAX_SCORE,
    MIN_SCORE,
    NEW_WORK_FETCH_MULTIPLIER,
    NEW_WORK_MIN_VIEWS,
)
from src.recommender.models import CTRStats, WorkCandidate


def _has_reliable_ctr(stats: CTRStats | None, min_impressions: int) -> bool:
    return stats is not None and stats.impression_count >= min_impressions


def new_work_quality_score(
    work: WorkCandidate,
    stats: CTRStats | None = None,
    min_impressions: int = 20,
) -> float:
    """Score a new work on a 0-10 scale.

    With reliable telemetry: CTR (5% earns 10) weighted 0.4, engagement
    weighted 0.2 and basic stats weighted 0.4. Without it, basic stats
    carry the whole score.

    Args:
        work: Work to score.
        stats: CTR telemetry if any.
        min_impressions: Impressions needed for telemetry to count.

    Returns:
        Score clamped to [0, 10].
    """
    score = 0.0
    reliable = _has_reliable_ctr(stats, min_impressions)

    if reliable and stats is not None:
        ctr_score = min(MAX_SCORE, stats.ctr_unique * 100 * 2)
        engagement_score = min(
            MAX_SCORE,
            stats.avg_display_duration / 1000 + stats.avg_intersection_ratio * 5,
        )
        score += ctr_score * 0.4 + engagement_score * 0.2

    views_score = min(MAX_SCORE, work.views / 50)
    likes_score = min(MAX_SCORE, work.likes / 10)
    comments_score = min(MAX_SCORE, work.comments / 3)
    basic_score = views_score * 0.5 + likes_score * 0.3 + comments_score * 0.2
    score += basic_score * (0.4 if reliable else 1.0)

    return min(MAX_SCORE, max(MIN_SCORE, score))


def recent_works(
    works: Iterable[WorkCandidate],
    now: datetime,
    window_days: int,
    limit: int,
) -> list[WorkCandidate]:
    """Newest works inside the window that have been viewed at least twice.

    Args:
        works: Catalog works.
        now: Reference time.
        window_days: Age window in days.
        limit: Maximum works returned.

    Returns:
        Works ordered newest first.
    """
    since = now - timedelta(days=window_days)
    eligible = [
        w
        for w in works
        if w.created_at is not None
        and as_utc(w.created_at) >= since
        and w.views > NEW_WORK_MIN_VIEWS
    ]
    eligible.sort(key=lambda w: as_utc(w.created_at), reverse=True)  # type: ignore[arg-type]
    return eligible[:limit]


def select_quality_new_works(
    works: Iterable[WorkCandidate],
    ctr_stats: Mapping[str, CTRStats],
    limit: int,
    now: datetime | None = None,
    config: QualityConfig | None = None,
) -> list[WorkCandidate]:
    """Pick the best recent works, favouring those with reliable telemetry.

    Up to 70% of the slots go to CTR-validated works; the rest, plus any
    CTR shortfall, go to works scored on basic stats only.

    Args:
        works: Candidate pool (typically the whole catalog).
        ctr_stats: Telemetry keyed by work id.
        limit: Maximum works returned.
        now: Reference time.
        config: Window, share and impression threshold.

    Returns:
        Selected works, CTR-validated group first.
    """
    if limit <= 0:
        return []
    config = config or QualityConfig()
    now = as_utc(now or utc_now())

    pool = recent_works(
        works, now, config.new_work_window_days, limit * NEW_WORK_FETCH_MULTIPLIER
    )

    with_ctr: list[tuple[float, WorkCandidate]] = []
    without_ctr: list[tuple[float, WorkCandidate]] = []
    for work in pool:
        stats = ctr_stats.get(work.work_id)
        score = new_work_quality_score(work, stats, config.min_impressions)
        if _has_reliable_ctr(stats, config.min_impressions):
            with_ctr.append((score, work))
        else:
            without_ctr.append((score, work))

    with_ctr.sort(key=lambda pair: -pair[0])
    without_ctr.sort(key=lambda pair: -pair[0])

    ctr_limit = math.ceil(limit * config.new_work_ctr_share)
    basic_limit = limit - min(ctr_limit, len(with_ctr))

    selected = [w for _, w in with_ctr[:ctr_limit]]
    selected.extend(w for _, w in without_ctr[:basic_limit])
    return selected[:limit]
