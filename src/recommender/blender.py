"""Diversity blending of challenge works into regular recommendations."""

import math
from collections.abc import Collection

import structlog

from src.config.schemas.recommender import BlendingConfig
from src.recommender.metrics import RecommendationMetrics
from src.recommender.models import (
    ChallengeCandidate,
    ScoredWork,
    UserPreferenceProfile,
)
from src.recommender.protocols import WorkRepository
from src.recommender.ranker import WorkRanker


logger = structlog.get_logger()


def challenge_slots(target_count: int, divisor: int = 5) -> int:
    """Number of challenge slots for a target size (one per ``divisor``)."""
    if target_count <= 0:
        return 0
    return math.ceil(target_count / divisor)


def interleave(
    regular: list[ScoredWork],
    challenge: list[ScoredWork],
    target_count: int,
    insert_every: int = 8,
) -> list[ScoredWork]:
    """Place a challenge work at every Nth slot.

    Slot ``i`` (0-based) takes a challenge when ``(i + 1) % insert_every == 0``
    and challenges remain, otherwise the next regular work. Once one pool
    runs out the other is drained. Output stops at ``target_count``.

    Args:
        regular: Regular works in rank order.
        challenge: Challenge works in pick order.
        target_count: Maximum output length.
        insert_every: Challenge cadence.

    Returns:
        Blended list.
    """
    regular_pool = list(regular)
    challenge_pool = list(challenge)
    result: list[ScoredWork] = []

    i = 0
    while i < target_count and (regular_pool or challenge_pool):
        if (i + 1) % insert_every == 0 and challenge_pool:
            result.append(challenge_pool.pop(0))
        elif regular_pool:
            result.append(regular_pool.pop(0))
        else:
            result.append(challenge_pool.pop(0))
        i += 1

    return result


class DiversityBlender:
    """Mixes off-profile challenge works into a ranked list.

    Blending runs only when the target exceeds one page; smaller requests
    get the regular list truncated.
    """

    def __init__(
        self,
        repository: WorkRepository,
        ranker: WorkRanker,
        config: BlendingConfig | None = None,
        page_size: int = 9,
        metrics: RecommendationMetrics | None = None,
        request_id: str = "",
    ) -> None:
        """Initialize the blender.

        Args:
            repository: Gateway used to fetch challenge candidates.
            ranker: Ranker used to score challenge works.
            config: Challenge ratio and cadence.
            page_size: Single-page size; blending is skipped at or below it.
            metrics: Optional metrics instance.
            request_id: Request identifier for logging.
        """
        self._repository = repository
        self._ranker = ranker
        self._config = config or BlendingConfig()
        self._page_size = page_size
        self._metrics = metrics or RecommendationMetrics.get_instance()
        self._log = logger.bind(
            component="recommender",
            subcomponent="blender",
            request_id=request_id,
        )

    def blend(
        self,
        regular: list[ScoredWork],
        reader_id: str,
        target_count: int,
        preferences: UserPreferenceProfile | None = None,
        followed_author_ids: Collection[str] = frozenset(),
        exclude_work_ids: Collection[str] = (),
    ) -> list[ScoredWork]:
        """Blend challenge works into the regular list.

        Args:
            regular: Ranked regular works.
            reader_id: Reader the challenges are picked for.
            target_count: Requested result size.
            preferences: Reader preferences (defines "off-profile").
            followed_author_ids: Authors the reader follows.
            exclude_work_ids: Works the caller already has.

        Returns:
            Blended list of at most ``target_count`` works.
        """
        if target_count <= self._page_size:
            return regular[:target_count]

        preferences = preferences or UserPreferenceProfile()
        challenge_count = challenge_slots(target_count, self._config.challenge_divisor)
        regular_count = target_count - challenge_count

        candidates = self._fetch_challenges(
            reader_id,
            preferences,
            challenge_count * self._config.fetch_multiplier,
        )

        taken = {w.work_id for w in regular}
        taken.update(exclude_work_ids)
        picked: list[ChallengeCandidate] = []
        for candidate in candidates:
            if candidate.work.work_id in taken:
                continue
            taken.add(candidate.work.work_id)
            picked.append(candidate)

        if not picked:
            self._log.info("no_challenge_works", target_count=target_count)
            return regular[:target_count]

        challenge = self._ranker.score_challenges(
            picked[:challenge_count], preferences, followed_author_ids
        )
        blended = interleave(
            regular[:regular_count],
            challenge,
            target_count,
            self._config.insert_every,
        )

        inserted = sum(1 for w in blended if w.is_challenge)
        self._metrics.record_challenge_insertions(inserted)
        self._log.info(
            "blending_complete",
            target_count=target_count,
            regular_count=len(blended) - inserted,
            challenge_count=inserted,
            challenge_fetched=len(candidates),
        )
        return blended

    def _fetch_challenges(
        self,
        reader_id: str,
        preferences: UserPreferenceProfile,
        limit: int,
    ) -> list[ChallengeCandidate]:
        try:
            return self._repository.fetch_challenge_works(
                reader_id,
                preferences.category_names,
                preferences.tag_names,
                limit,
            )
        except Exception:  # noqa: BLE001
            self._log.warning("challenge_works_unavailable", limit=limit, exc_info=True)
            return []
