"""Client-side feed paging driven by load-more responses."""

import structlog

from src.recommender.models import (
    RecommendationFailure,
    RecommendationResult,
    ScoredWork,
)
from src.recommender.service import RecommendationService
from src.recommender.state_machine import FeedState, FeedStateMachine


logger = structlog.get_logger()


class FeedPaginator:
    """Tracks what a reader has been shown and loads further pages.

    The feed is marked exhausted when a load returns no new works or
    reports nothing more; an exhausted feed never calls the service again.
    """

    def __init__(self, service: RecommendationService, reader_id: str | None = None) -> None:
        """Initialize the paginator.

        Args:
            service: Recommendation service.
            reader_id: Signed-in reader, or None for a guest.
        """
        self._service = service
        self._reader_id = reader_id
        self._machine = FeedStateMachine(reader_id or "guest")
        self._shown: list[ScoredWork] = []
        self._shown_ids: set[str] = set()
        self._log = logger.bind(
            component="recommender",
            subcomponent="pagination",
            reader_id=reader_id or "guest",
        )

    @property
    def state(self) -> FeedState:
        """Current feed state."""
        return self._machine.state

    @property
    def shown(self) -> list[ScoredWork]:
        """Works shown so far, in display order."""
        return list(self._shown)

    @property
    def offset(self) -> int:
        """Number of works shown so far."""
        return len(self._shown)

    def seed(
        self, first_page: RecommendationResult | RecommendationFailure
    ) -> list[ScoredWork]:
        """Record the initial page shown to the reader.

        Args:
            first_page: Result of the initial recommendation request.

        Returns:
            Works added to the feed.
        """
        if isinstance(first_page, RecommendationFailure):
            return []
        return self._record(first_page.works)

    def load_more(self) -> list[ScoredWork]:
        """Load the next page.

        Returns:
            New works added to the feed; empty once exhausted.
        """
        if self._machine.is_exhausted:
            return []

        self._machine.to_loading_more()
        response = self._service.get_more_recommendations(
            self._reader_id,
            exclude_work_ids=sorted(self._shown_ids),
            offset=self.offset,
        )

        if isinstance(response, RecommendationFailure):
            # Stay loadable; the reader may retry.
            self._log.warning("load_more_failed", error=response.error)
            self._machine.to_has_more()
            return []

        added = self._record(response.works)
        if not added or not response.has_more:
            self._machine.to_exhausted()
        else:
            self._machine.to_has_more()

        self._log.info(
            "feed_page_loaded",
            added=len(added),
            has_more=response.has_more,
            state=self._machine.state.value,
        )
        return added

    def _record(self, works: list[ScoredWork]) -> list[ScoredWork]:
        added = [w for w in works if w.work_id not in self._shown_ids]
        for work in added:
            self._shown_ids.add(work.work_id)
            self._shown.append(work)
        return added
