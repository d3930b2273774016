"""Shared pydantic bases for plans, results and events."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Strict base model.

    Unknown keys are rejected so malformed planner output fails validation.
    Aliased fields also accept their Python name.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class FrozenSchema(BaseSchema):
    """``BaseSchema`` whose instances cannot be mutated once built."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)
