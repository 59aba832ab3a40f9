# Copyright (c) Syntropy Systems
"""Shared Pydantic model helpers for capping."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class CappingBaseModel(BaseModel):
    """Base model with shared config for capping wire schemas."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )


class FrozenModel(BaseModel):
    """Immutable model for values that must not change once built."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="forbid",
        frozen=True,
    )
