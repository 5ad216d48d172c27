"""State machine for loading recommender.yaml."""

from enum import Enum
from typing import ClassVar

import structlog

from src.config.constants import COMPONENT_CONFIG


logger = structlog.get_logger()


class ConfigState(str, Enum):
    """Configuration loading states.

    State transitions:
        UNLOADED -> LOADING: File read started
        LOADING -> VALIDATED: YAML parsed and schema validated
        VALIDATED -> READY: Configuration handed to the engine
        Any non-terminal -> FAILED: Read, parse or validation error
    """

    UNLOADED = "UNLOADED"
    LOADING = "LOADING"
    VALIDATED = "VALIDATED"
    READY = "READY"
    FAILED = "FAILED"


class ConfigStateError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: ConfigState, to_state: ConfigState) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid config state transition: {from_state.value} -> {to_state.value}"
        )


class ConfigStateMachine:
    """Tracks one load of the recommender configuration.

    A loader instance loads exactly once; READY and FAILED admit no
    further loads.
    """

    VALID_TRANSITIONS: ClassVar[dict[ConfigState, set[ConfigState]]] = {
        ConfigState.UNLOADED: {ConfigState.LOADING, ConfigState.FAILED},
        ConfigState.LOADING: {ConfigState.VALIDATED, ConfigState.FAILED},
        ConfigState.VALIDATED: {ConfigState.READY, ConfigState.FAILED},
        ConfigState.READY: set(),
        ConfigState.FAILED: set(),
    }

    def __init__(self, run_id: str = "config") -> None:
        """Initialize the state machine in UNLOADED state.

        Args:
            run_id: Run identifier for logging.
        """
        self._state = ConfigState.UNLOADED
        self._log = logger.bind(component=COMPONENT_CONFIG, run_id=run_id)

    @property
    def state(self) -> ConfigState:
        """Get the current state."""
        return self._state

    def can_transition(self, to_state: ConfigState) -> bool:
        """Check if a transition to the given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: ConfigState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            ConfigStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            raise ConfigStateError(self._state, to_state)
        self._log.debug(
            "config_state_transition",
            from_state=self._state.value,
            to_state=to_state.value,
        )
        self._state = to_state

    def is_terminal(self) -> bool:
        """Check if no further transitions are allowed."""
        return not self.VALID_TRANSITIONS[self._state]

    def is_ready(self) -> bool:
        """Check if configuration is ready for use."""
        return self._state == ConfigState.READY
