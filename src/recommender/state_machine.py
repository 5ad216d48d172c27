"""State machines for recommendation pipeline runs and client feeds."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class PipelineState(str, Enum):
    """State of one recommendation request.

    States represent the lifecycle of a single pipeline run:
    - PENDING: Not yet started
    - STRATEGY_SELECTED: Strategy chosen from the reader's activity
    - CANDIDATES_AGGREGATED: All sources fetched or failed
    - FILTERED: In-progress works removed
    - RANKED: Deduplicated, scored and sorted
    - BLENDED: Challenge works interleaved and truncated
    - COMPLETE: Result returned
    - FAILED: Unexpected error; a failure value was returned
    """

    PENDING = "PENDING"
    STRATEGY_SELECTED = "STRATEGY_SELECTED"
    CANDIDATES_AGGREGATED = "CANDIDATES_AGGREGATED"
    FILTERED = "FILTERED"
    RANKED = "RANKED"
    BLENDED = "BLENDED"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


_VALID_PIPELINE_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
    PipelineState.PENDING: {PipelineState.STRATEGY_SELECTED, PipelineState.FAILED},
    PipelineState.STRATEGY_SELECTED: {
        PipelineState.CANDIDATES_AGGREGATED,
        PipelineState.FAILED,
    },
    PipelineState.CANDIDATES_AGGREGATED: {PipelineState.FILTERED, PipelineState.FAILED},
    PipelineState.FILTERED: {PipelineState.RANKED, PipelineState.FAILED},
    PipelineState.RANKED: {PipelineState.BLENDED, PipelineState.FAILED},
    PipelineState.BLENDED: {PipelineState.COMPLETE, PipelineState.FAILED},
    PipelineState.COMPLETE: set(),  # Terminal state
    PipelineState.FAILED: set(),  # Terminal state
}


class FeedState(str, Enum):
    """Client-facing feed state for incremental loading.

    - INITIAL: First page shown, more unknown
    - LOADING_MORE: A load-more request is in flight
    - HAS_MORE: Last load returned works and reported more
    - EXHAUSTED: Nothing more to load; no further requests
    """

    INITIAL = "INITIAL"
    LOADING_MORE = "LOADING_MORE"
    HAS_MORE = "HAS_MORE"
    EXHAUSTED = "EXHAUSTED"


_VALID_FEED_TRANSITIONS: dict[FeedState, set[FeedState]] = {
    FeedState.INITIAL: {FeedState.LOADING_MORE, FeedState.EXHAUSTED},
    FeedState.LOADING_MORE: {FeedState.HAS_MORE, FeedState.EXHAUSTED},
    FeedState.HAS_MORE: {FeedState.LOADING_MORE},
    FeedState.EXHAUSTED: set(),  # Terminal state
}


class StateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        subject: str,
        from_state: PipelineState | FeedState,
        to_state: PipelineState | FeedState,
    ) -> None:
        """Initialize the transition error.

        Args:
            subject: Request or feed identifier.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.subject = subject
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for '{subject}': "
            f"{from_state.value} -> {to_state.value}"
        )


class PipelineStateMachine:
    """Tracks the stages of one recommendation request.

    Enforces valid transitions and logs all state changes.
    """

    def __init__(self, request_id: str) -> None:
        """Initialize the state machine in PENDING.

        Args:
            request_id: Identifier for the request.
        """
        self._request_id = request_id
        self._state = PipelineState.PENDING
        self._log = logger.bind(
            component="recommender",
            subcomponent="pipeline",
            request_id=request_id,
        )

    @property
    def state(self) -> PipelineState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in (PipelineState.COMPLETE, PipelineState.FAILED)

    def can_transition_to(self, target: PipelineState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_PIPELINE_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: PipelineState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            StateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise StateTransitionError(self._request_id, self._state, target)

        old_state = self._state
        self._state = target
        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_strategy_selected(self) -> None:
        """Transition to STRATEGY_SELECTED state."""
        self.transition_to(PipelineState.STRATEGY_SELECTED)

    def to_candidates_aggregated(self) -> None:
        """Transition to CANDIDATES_AGGREGATED state."""
        self.transition_to(PipelineState.CANDIDATES_AGGREGATED)

    def to_filtered(self) -> None:
        """Transition to FILTERED state."""
        self.transition_to(PipelineState.FILTERED)

    def to_ranked(self) -> None:
        """Transition to RANKED state."""
        self.transition_to(PipelineState.RANKED)

    def to_blended(self) -> None:
        """Transition to BLENDED state."""
        self.transition_to(PipelineState.BLENDED)

    def to_complete(self) -> None:
        """Transition to COMPLETE state."""
        self.transition_to(PipelineState.COMPLETE)

    def to_failed(self) -> None:
        """Transition to FAILED state unless already terminal."""
        if not self.is_terminal:
            self.transition_to(PipelineState.FAILED)


class FeedStateMachine:
    """Explicit feed state driven by load-more responses."""

    def __init__(self, feed_id: str = "feed") -> None:
        """Initialize the state machine in INITIAL.

        Args:
            feed_id: Identifier used in logs and errors.
        """
        self._feed_id = feed_id
        self._state = FeedState.INITIAL
        self._log = logger.bind(
            component="recommender",
            subcomponent="feed",
            feed_id=feed_id,
        )

    @property
    def state(self) -> FeedState:
        """Get the current state."""
        return self._state

    @property
    def is_exhausted(self) -> bool:
        """Whether no further load-more requests may be issued."""
        return self._state == FeedState.EXHAUSTED

    def can_transition_to(self, target: FeedState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_FEED_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: FeedState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            StateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            raise StateTransitionError(self._feed_id, self._state, target)

        old_state = self._state
        self._state = target
        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_loading_more(self) -> None:
        """Transition to LOADING_MORE state."""
        self.transition_to(FeedState.LOADING_MORE)

    def to_has_more(self) -> None:
        """Transition to HAS_MORE state."""
        self.transition_to(FeedState.HAS_MORE)

    def to_exhausted(self) -> None:
        """Transition to EXHAUSTED state."""
        self.transition_to(FeedState.EXHAUSTED)
