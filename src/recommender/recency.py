"""Exclusion of works the reader is already reading."""

import structlog

from src.config.schemas.recommender import RecencyConfig
from src.recommender.models import WorkCandidate
from src.recommender.protocols import WorkRepository


logger = structlog.get_logger()


def exclude_in_progress(
    candidates: list[WorkCandidate],
    progress: dict[str, float],
    max_progress_percent: float = 10.0,
) -> list[WorkCandidate]:
    """Drop candidates whose reading progress exceeds the threshold.

    Args:
        candidates: Candidate works in order.
        progress: Reading progress percentage keyed by work id.
        max_progress_percent: Progress at or below this is kept.

    Returns:
        Remaining candidates, order preserved.
    """
    excluded = {
        work_id for work_id, percent in progress.items() if percent > max_progress_percent
    }
    if not excluded:
        return candidates
    return [c for c in candidates if c.work_id not in excluded]


class RecencyExclusionFilter:
    """Removes works the reader has substantially progressed.

    Fails open: when progress cannot be fetched nothing is filtered.
    """

    def __init__(
        self,
        repository: WorkRepository,
        config: RecencyConfig | None = None,
    ) -> None:
        """Initialize the filter.

        Args:
            repository: Gateway used to fetch reading progress.
            config: Threshold configuration.
        """
        self._repository = repository
        self._config = config or RecencyConfig()
        self._log = logger.bind(component="recommender", subcomponent="recency")

    def apply(self, candidates: list[WorkCandidate], reader_id: str) -> list[WorkCandidate]:
        """Filter candidates for a reader.

        Args:
            candidates: Candidate works.
            reader_id: Reader whose progress is checked.

        Returns:
            Candidates without in-progress works.
        """
        try:
            progress = self._repository.fetch_reading_progress(reader_id)
        except Exception:  # noqa: BLE001
            self._log.warning("reading_progress_unavailable", exc_info=True)
            return candidates

        filtered = exclude_in_progress(
            candidates, progress, self._config.max_progress_percent
        )
        if len(filtered) != len(candidates):
            self._log.info(
                "in_progress_works_excluded",
                before=len(candidates),
                after=len(filtered),
            )
        return filtered
