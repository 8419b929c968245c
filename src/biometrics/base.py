"""Canonical reading types for the biometrics sync engine.

Every producer of readings (the file decoders and the push endpoint) returns
one of the four Reading variants below.  These types are the single source of
truth consumed by the time-series store, the query engine, and the API layer.

Timestamps are always canonical ISO-8601 UTC strings with millisecond
precision (``2026-01-24T07:30:00.000Z``).  Fixed-width fields mean that string
order equals chronological order, which the store relies on for windowed
listing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Union

logger = logging.getLogger("biometrics.base")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Category(str, Enum):
    """The four biometric reading kinds."""

    HEART_RATE = "heart_rate"
    SLEEP = "sleep"
    STEPS = "steps"
    STRESS = "stress"


class ReadingValidationError(ValueError):
    """Raised when a payload cannot be turned into a typed Reading."""


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format a datetime as a canonical ISO-8601 UTC string.

    Naive datetimes are assumed to already be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    # %Y is not zero-padded on every platform; keys must stay fixed-width
    return f"{value.year:04d}" + value.strftime("-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def canonical_timestamp(value: str) -> str:
    """Re-format any ISO-8601 timestamp into the canonical stored form."""
    return to_iso(parse_iso(value))


# ---------------------------------------------------------------------------
# Reading variants
# ---------------------------------------------------------------------------


def _compact(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class HeartRateReading:
    """A single heart-rate sample.

    Attributes:
        timestamp: Canonical ISO-8601 UTC timestamp.
        bpm:       Beats per minute.
        min:       Optional minimum over the sample interval.
        max:       Optional maximum over the sample interval.
    """

    CATEGORY: ClassVar[Category] = Category.HEART_RATE

    timestamp: str
    bpm: int
    min: int | None = None
    max: int | None = None

    def to_payload(self) -> dict:
        return _compact({"timestamp": self.timestamp, "bpm": self.bpm, "min": self.min, "max": self.max})

    @classmethod
    def from_payload(cls, timestamp: str, data: dict) -> HeartRateReading:
        return cls(
            timestamp=timestamp,
            bpm=int(data["bpm"]),
            min=_optional_int(data.get("min")),
            max=_optional_int(data.get("max")),
        )


@dataclass(frozen=True)
class SleepStages:
    """Minutes spent in each labelled sleep stage."""

    awake_minutes: int | None = None
    light_minutes: int | None = None
    deep_minutes: int | None = None
    rem_minutes: int | None = None

    def to_payload(self) -> dict:
        return _compact(
            {
                "awake_minutes": self.awake_minutes,
                "light_minutes": self.light_minutes,
                "deep_minutes": self.deep_minutes,
                "rem_minutes": self.rem_minutes,
            }
        )


@dataclass(frozen=True)
class SleepReading:
    """One composite sleep session.

    The session's own ``timestamp`` is its end time, so the most recent
    session sorts first in the store.

    Attributes:
        timestamp:     Canonical timestamp of the session (== end_time).
        start_time:    Timestamp of the first segment.
        end_time:      Timestamp of the last segment.
        total_minutes: Total duration across all segments, any stage.
        stages:        Optional per-stage breakdown.
    """

    CATEGORY: ClassVar[Category] = Category.SLEEP

    timestamp: str
    start_time: str
    end_time: str
    total_minutes: int
    stages: SleepStages | None = None

    def to_payload(self) -> dict:
        payload = {
            "timestamp": self.timestamp,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_minutes": self.total_minutes,
        }
        if self.stages is not None:
            payload["stages"] = self.stages.to_payload()
        return payload

    @classmethod
    def from_payload(cls, timestamp: str, data: dict) -> SleepReading:
        stages_raw = data.get("stages")
        stages = None
        if isinstance(stages_raw, dict):
            stages = SleepStages(
                awake_minutes=_optional_int(stages_raw.get("awake_minutes")),
                light_minutes=_optional_int(stages_raw.get("light_minutes")),
                deep_minutes=_optional_int(stages_raw.get("deep_minutes")),
                rem_minutes=_optional_int(stages_raw.get("rem_minutes")),
            )
        return cls(
            timestamp=timestamp,
            start_time=str(data["start_time"]),
            end_time=str(data["end_time"]),
            total_minutes=int(data["total_minutes"]),
            stages=stages,
        )

    @property
    def total_hours(self) -> float:
        return self.total_minutes / 60


@dataclass(frozen=True)
class StepsReading:
    """A cumulative step count sample."""

    CATEGORY: ClassVar[Category] = Category.STEPS

    timestamp: str
    count: int
    distance_meters: float | None = None
    calories: float | None = None

    def to_payload(self) -> dict:
        return _compact(
            {
                "timestamp": self.timestamp,
                "count": self.count,
                "distance_meters": self.distance_meters,
                "calories": self.calories,
            }
        )

    @classmethod
    def from_payload(cls, timestamp: str, data: dict) -> StepsReading:
        return cls(
            timestamp=timestamp,
            count=int(data["count"]),
            distance_meters=_optional_float(data.get("distance_meters")),
            calories=_optional_float(data.get("calories")),
        )

    @property
    def date(self) -> str:
        return self.timestamp.split("T", 1)[0]


STRESS_LABELS: frozenset[str] = frozenset({"relaxed", "normal", "moderate", "high"})


@dataclass(frozen=True)
class StressReading:
    """A stress level sample with an optional qualitative label."""

    CATEGORY: ClassVar[Category] = Category.STRESS

    timestamp: str
    level: float
    label: str | None = None

    def __post_init__(self) -> None:
        if self.label is not None and self.label not in STRESS_LABELS:
            raise ReadingValidationError(f"Unknown stress label: {self.label!r}")

    def to_payload(self) -> dict:
        return _compact({"timestamp": self.timestamp, "level": self.level, "label": self.label})

    @classmethod
    def from_payload(cls, timestamp: str, data: dict) -> StressReading:
        level = data["level"]
        if isinstance(level, bool) or not isinstance(level, (int, float)):
            level = float(level)
        return cls(timestamp=timestamp, level=level, label=data.get("label"))


Reading = Union[HeartRateReading, SleepReading, StepsReading, StressReading]

READING_TYPES: dict[Category, type] = {
    Category.HEART_RATE: HeartRateReading,
    Category.SLEEP: SleepReading,
    Category.STEPS: StepsReading,
    Category.STRESS: StressReading,
}


def reading_from_payload(category: Category | str, timestamp: str, data: dict) -> Reading:
    """Rebuild the typed Reading variant for a stored or pushed payload.

    Raises:
        ReadingValidationError: If required fields are missing or malformed.
    """
    try:
        reading_type = READING_TYPES[Category(category)]
    except ValueError as exc:
        raise ReadingValidationError(f"Unknown category: {category!r}") from exc
    try:
        return reading_type.from_payload(timestamp, data)
    except ReadingValidationError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise ReadingValidationError(
            f"Invalid {Category(category).value} payload at {timestamp}: {exc}"
        ) from exc


def _optional_int(value: object) -> int | None:
    if value is None:
        return None
    return int(value)  # type: ignore[arg-type]


def _optional_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]
