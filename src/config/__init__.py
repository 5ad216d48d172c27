"""Configuration loading and validation module."""

from src.config.loader import ConfigLoader, load_config
from src.config.schemas.recommender import RecommenderConfig
from src.config.state_machine import ConfigState, ConfigStateError


__all__ = [
    "ConfigLoader",
    "ConfigState",
    "ConfigStateError",
    "RecommenderConfig",
    "load_config",
]
