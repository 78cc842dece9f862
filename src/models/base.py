"""Shared Pydantic base model for the Cyclecast schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CyclecastBase(BaseModel):
    """Base model with shared config for all Cyclecast schemas.

    Fields are snake_case in Python and camelCase on the wire.  Read
    schemas are built straight from the engine dataclasses.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
    )
