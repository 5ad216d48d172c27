"""Error types for the recommendation engine."""

from enum import Enum


class RecommenderErrorClass(str, Enum):
    """Classification of recommendation failures.

    - SOURCE_UNAVAILABLE: One aggregation source failed; contributes nothing
    - SCORING_DEGRADED: Quality scoring failed partially or fully; defaults used
    - PROFILE_UNAVAILABLE: Reader profile fetch failed; empty profile used
    - PIPELINE_FAILURE: Unexpected error in orchestration; surfaced to caller
    """

    SOURCE_UNAVAILABLE = "SOURCE_UNAVAILABLE"
    SCORING_DEGRADED = "SCORING_DEGRADED"
    PROFILE_UNAVAILABLE = "PROFILE_UNAVAILABLE"
    PIPELINE_FAILURE = "PIPELINE_FAILURE"


class RecommenderError(Exception):
    """Base exception for recommender errors.

    Provides structured error information for logging.
    """

    def __init__(
        self,
        error_class: RecommenderErrorClass,
        message: str,
        source_id: str | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        """Initialize the recommender error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            source_id: Candidate source or repository call that failed.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.source_id = source_id
        self.details = details or {}

    def to_dict(
        self,
    ) -> dict[str, str | int | bool | None | dict[str, str | int | bool | None]]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "source_id": self.source_id,
            "details": self.details,
        }


class RepositoryError(RecommenderError):
    """Raised by a repository gateway when a query cannot be answered."""

    def __init__(
        self,
        message: str,
        source_id: str | None = None,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        """Initialize the repository error.

        Args:
            message: Human-readable error message.
            source_id: Repository call that failed.
            details: Additional structured error details.
        """
        super().__init__(
            error_class=RecommenderErrorClass.SOURCE_UNAVAILABLE,
            message=message,
            source_id=source_id,
            details=details,
        )
