"""Decoders for the delimited-text exports written by the phone sync app.

Every category is described by a small frozen ``DecodeRule``; a single
``decode()`` walks the rows and either emits one reading per row or folds all
rows into one composite reading (sleep).  Decoding is a pure function: no I/O,
no side effects.

Row layouts (first line is always a header and is skipped)::

    heart_rate  Date,Time,Heart rate,Source
    steps       Date,Time,Steps,Source
    stress      Date,Time,Stress[,Label]
    sleep       Date,Time,Duration in seconds,Sleep stage

The ``Date`` column carries a dotted date with a space-separated time
(``2026.01.24 07:30:00``).  Older exports split date and time across the first
two columns; both forms are accepted.  Timestamps are treated as UTC.

A malformed row (too few fields, bad timestamp, non-numeric value) is skipped;
it never fails the whole decode.
"""

from __future__ import annotations

import csv
import io
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator

from src.biometrics.base import (
    STRESS_LABELS,
    Category,
    HeartRateReading,
    Reading,
    SleepReading,
    SleepStages,
    StepsReading,
    StressReading,
    to_iso,
)

logger = logging.getLogger("biometrics.decoders")

_TIMESTAMP_FORMATS = ("%Y.%m.%d %H:%M:%S", "%Y.%m.%d %H:%M")

# Leading-integer semantics: "72", "72.4" and "72 bpm" all decode to 72.
_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")

SLEEP_STAGES: tuple[str, ...] = ("awake", "light", "deep", "rem")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def normalize_timestamp(date_field: str, time_field: str = "") -> str | None:
    """Turn a dotted export timestamp into a canonical ISO-8601 UTC string.

    Returns None when the value cannot be parsed.
    """
    text = date_field.strip()
    if " " not in text and time_field.strip():
        text = f"{text} {time_field.strip()}"
    for fmt in _TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return to_iso(parsed.replace(tzinfo=timezone.utc))
    return None


def parse_int(value: str) -> int | None:
    match = _INT_PREFIX.match(value)
    return int(match.group(1)) if match else None


def parse_number(value: str) -> int | float | None:
    match = _NUMBER_PREFIX.match(value)
    if not match:
        return None
    number = float(match.group(1))
    return int(number) if number.is_integer() else number


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Rule descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DecodeRule:
    """Per-category decoding rule.

    Attributes:
        category:     Category this rule produces.
        value_column: Index of the numeric column.
        min_fields:   Rows with fewer fields are skipped.
        label_column: Optional index of a label column (stress label, sleep stage).
        aggregate:    Fold all rows into one composite reading instead of one per row.
        cap:          Maximum readings kept per file during sync (None = uncapped).
        value_parser: Parses the numeric column; returns None for malformed input.
    """

    category: Category
    value_column: int = 2
    min_fields: int = 3
    label_column: int | None = None
    aggregate: bool = False
    cap: int | None = None
    value_parser: Callable[[str], int | float | None] = parse_int

    def capped(self, readings: list[Reading]) -> list[Reading]:
        """Trim a decoded file to this category's per-run cap."""
        if self.cap is None:
            return readings
        return readings[: self.cap]


RULES: dict[Category, DecodeRule] = {
    Category.HEART_RATE: DecodeRule(Category.HEART_RATE, cap=200),
    Category.STEPS: DecodeRule(Category.STEPS, cap=100),
    Category.STRESS: DecodeRule(Category.STRESS, label_column=3, value_parser=parse_number),
    Category.SLEEP: DecodeRule(Category.SLEEP, min_fields=4, label_column=3, aggregate=True),
}


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _rows(text: str) -> Iterator[list[str]]:
    """Yield the data rows of an export, header skipped, blank lines dropped."""
    reader = csv.reader(io.StringIO(text.strip()))
    next(reader, None)
    for row in reader:
        if not row or not any(cell.strip() for cell in row):
            continue
        yield [cell.strip() for cell in row]


def _label(rule: DecodeRule, row: list[str]) -> str | None:
    if rule.label_column is None or len(row) <= rule.label_column:
        return None
    return row[rule.label_column].lower() or None


def _build_row_reading(rule: DecodeRule, timestamp: str, value: int | float, row: list[str]) -> Reading:
    if rule.category is Category.HEART_RATE:
        return HeartRateReading(timestamp=timestamp, bpm=int(value))
    if rule.category is Category.STEPS:
        return StepsReading(timestamp=timestamp, count=int(value))
    if rule.category is Category.STRESS:
        label = _label(rule, row)
        return StressReading(
            timestamp=timestamp,
            level=value,
            label=label if label in STRESS_LABELS else None,
        )
    raise ValueError(f"{rule.category.value} rows are not decoded one reading per row")


def _decode_rows(rule: DecodeRule, text: str) -> list[Reading]:
    readings: list[Reading] = []
    for line_no, row in enumerate(_rows(text), start=2):
        if len(row) < rule.min_fields:
            logger.debug("%s: skipping short row %d", rule.category.value, line_no)
            continue
        timestamp = normalize_timestamp(row[0], row[1])
        value = rule.value_parser(row[rule.value_column])
        if timestamp is None or value is None:
            logger.debug("%s: skipping malformed row %d: %r", rule.category.value, line_no, row)
            continue
        readings.append(_build_row_reading(rule, timestamp, value, row))
    return readings


def _aggregate_sleep(rule: DecodeRule, text: str) -> SleepReading | None:
    """Fold sleep segments into one session.

    Segment durations are summed per stage and in total, then converted to
    whole minutes.  Unrecognised stages count towards the total only.
    """
    stage_minutes = dict.fromkeys(SLEEP_STAGES, 0.0)
    total_minutes = 0.0
    start_time: str | None = None
    end_time: str | None = None
    segments = 0

    for line_no, row in enumerate(_rows(text), start=2):
        if len(row) < rule.min_fields:
            continue
        timestamp = normalize_timestamp(row[0], row[1])
        seconds = rule.value_parser(row[rule.value_column])
        if timestamp is None or seconds is None:
            logger.debug("sleep: skipping malformed row %d: %r", line_no, row)
            continue

        minutes = seconds / 60
        if start_time is None:
            start_time = timestamp
        end_time = timestamp
        total_minutes += minutes
        segments += 1

        stage = _label(rule, row)
        if stage in stage_minutes:
            stage_minutes[stage] += minutes

    if segments < 2 or start_time is None or end_time is None:
        return None

    return SleepReading(
        timestamp=end_time,
        start_time=start_time,
        end_time=end_time,
        total_minutes=round_half_up(total_minutes),
        stages=SleepStages(
            awake_minutes=round_half_up(stage_minutes["awake"]),
            light_minutes=round_half_up(stage_minutes["light"]),
            deep_minutes=round_half_up(stage_minutes["deep"]),
            rem_minutes=round_half_up(stage_minutes["rem"]),
        ),
    )


def decode(rule: DecodeRule, text: str) -> list[Reading]:
    """Decode one exported file according to ``rule``.

    Args:
        rule: Category rule from ``RULES``.
        text: Raw file content.

    Returns:
        Readings in file order.  Aggregating rules return at most one reading.
        Empty or header-only input returns an empty list.
    """
    if rule.aggregate:
        session = _aggregate_sleep(rule, text)
        return [session] if session is not None else []
    return _decode_rows(rule, text)


def decode_category(category: Category | str, text: str) -> list[Reading]:
    return decode(RULES[Category(category)], text)


def decode_sleep(text: str) -> SleepReading | None:
    """Decode a sleep export into its single composite session, if any."""
    return _aggregate_sleep(RULES[Category.SLEEP], text)
