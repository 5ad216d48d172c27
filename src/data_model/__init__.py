"""Shared data model primitives."""

from src.data_model.base import Count, Score, StrictBaseModel


__all__ = ["Count", "Score", "StrictBaseModel"]
