"""Shared Pydantic primitives for engine models and configuration."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


Score = Annotated[float, Field(ge=0.0, le=10.0)]
"""A score on the 0-10 scale."""

Count = Annotated[int, Field(ge=0)]
"""A non-negative counter (views, likes, seconds of TTL)."""


class StrictBaseModel(BaseModel):
    """Immutable model that rejects unknown fields.

    Works, scores and configuration sections are all value objects; a
    typo in a YAML key or catalog row fails validation instead of being
    silently dropped.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")
