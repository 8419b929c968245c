"""Shared Pydantic base model for request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BiometricsBase(BaseModel):
    """Base model with shared config for all biometrics schemas."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )
