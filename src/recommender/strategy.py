"""Strategy selection from a reader's activity level."""

from src.config.schemas.recommender import StrategyConfig
from src.recommender.constants import (
    SOURCE_LABEL_ADAPTIVE,
    SOURCE_LABEL_PERSONALIZED,
    SOURCE_LABEL_POPULAR,
)
from src.recommender.models import Strategy


_DEFAULT_CONFIG = StrategyConfig()

SOURCE_LABELS: dict[Strategy, str] = {
    Strategy.PERSONALIZED: SOURCE_LABEL_PERSONALIZED,
    Strategy.ADAPTIVE: SOURCE_LABEL_ADAPTIVE,
    Strategy.POPULAR: SOURCE_LABEL_POPULAR,
}


def select_strategy(total_actions: int, config: StrategyConfig | None = None) -> Strategy:
    """Map a reader's total action count to a strategy.

    Args:
        total_actions: Sum of the reader's activity counters.
        config: Thresholds; defaults to 50 (personalized) and 10 (adaptive).

    Returns:
        Selected strategy.
    """
    config = config or _DEFAULT_CONFIG
    if total_actions >= config.personalized_min_actions:
        return Strategy.PERSONALIZED
    if total_actions >= config.adaptive_min_actions:
        return Strategy.ADAPTIVE
    return Strategy.POPULAR


def source_label(strategy: Strategy) -> str:
    """Reader-facing label describing where a strategy's works come from."""
    return SOURCE_LABELS[strategy]
