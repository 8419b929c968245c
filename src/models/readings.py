"""Pydantic models for pushed readings, sync results and status."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator, model_validator

from src.biometrics.base import (
    Category,
    HeartRateReading,
    Reading,
    SleepReading,
    SleepStages,
    StepsReading,
    StressReading,
    canonical_timestamp,
)
from src.models.base import BiometricsBase


# ---------- Per-category data ----------

class HeartRateData(BiometricsBase):
    bpm: int = Field(ge=20, le=300)
    min: int | None = Field(default=None, ge=20, le=300)
    max: int | None = Field(default=None, ge=20, le=300)


class SleepStagesData(BiometricsBase):
    awake_minutes: int | None = Field(default=None, ge=0)
    light_minutes: int | None = Field(default=None, ge=0)
    deep_minutes: int | None = Field(default=None, ge=0)
    rem_minutes: int | None = Field(default=None, ge=0)


class SleepData(BiometricsBase):
    start_time: str
    end_time: str
    total_minutes: int = Field(ge=0, le=24 * 60)
    stages: SleepStagesData | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _canonical(cls, value: str) -> str:
        return canonical_timestamp(value)


class StepsData(BiometricsBase):
    count: int = Field(ge=0)
    distance_meters: float | None = Field(default=None, ge=0)
    calories: float | None = Field(default=None, ge=0)


class StressData(BiometricsBase):
    level: float = Field(ge=0, le=100)
    label: Literal["relaxed", "normal", "moderate", "high"] | None = None


_DATA_MODELS: dict[Category, type[BiometricsBase]] = {
    Category.HEART_RATE: HeartRateData,
    Category.SLEEP: SleepData,
    Category.STEPS: StepsData,
    Category.STRESS: StressData,
}


# ---------- Push payloads ----------

class PushPayload(BiometricsBase):
    """One externally constructed reading."""

    type: Category
    timestamp: str
    data: dict[str, Any]

    @field_validator("timestamp")
    @classmethod
    def _canonical_timestamp(cls, value: str) -> str:
        return canonical_timestamp(value)

    @model_validator(mode="after")
    def _validate_data(self) -> PushPayload:
        try:
            _DATA_MODELS[self.type].model_validate(self.data)
        except ValidationError as exc:
            raise ValueError(f"invalid {self.type.value} data: {exc.errors(include_url=False)}") from exc
        return self

    def to_reading(self) -> Reading:
        data = _DATA_MODELS[self.type].model_validate(self.data)
        if isinstance(data, HeartRateData):
            return HeartRateReading(timestamp=self.timestamp, bpm=data.bpm, min=data.min, max=data.max)
        if isinstance(data, SleepData):
            stages = None
            if data.stages is not None:
                stages = SleepStages(**data.stages.model_dump())
            return SleepReading(
                timestamp=self.timestamp,
                start_time=data.start_time,
                end_time=data.end_time,
                total_minutes=data.total_minutes,
                stages=stages,
            )
        if isinstance(data, StepsData):
            return StepsReading(
                timestamp=self.timestamp,
                count=data.count,
                distance_meters=data.distance_meters,
                calories=data.calories,
            )
        if isinstance(data, StressData):
            level = int(data.level) if data.level.is_integer() else data.level
            return StressReading(timestamp=self.timestamp, level=level, label=data.label)
        raise ValueError(f"Unsupported reading type: {self.type}")


class BatchPushPayload(BiometricsBase):
    readings: list[PushPayload] = Field(min_length=1)


def parse_push_body(body: Any) -> list[PushPayload]:
    """Validate a single or batch push body.

    Raises:
        pydantic.ValidationError: If the body does not match either shape.
    """
    if isinstance(body, dict) and "readings" in body:
        return BatchPushPayload.model_validate(body).readings
    return [PushPayload.model_validate(body)]


# ---------- Responses ----------

class PushResponse(BiometricsBase):
    success: bool = True
    stored: int
    type: Category | None = None


class SyncCounts(BiometricsBase):
    """Readings written per category; ``stress`` is reported alongside the
    three Drive categories every client expects."""

    heart_rate: int = 0
    sleep: int = 0
    steps: int = 0
    stress: int = 0


class SyncResponse(BiometricsBase):
    success: bool = True
    synced: SyncCounts

