"""Read-only windowed views over the time-series store.

Every view is a pure function of store state: nothing here writes readings
or touches the sync cursor.  Stored payloads are rebuilt into their typed
Reading variant before any category-specific shaping.

Views:
    heart_rate(hours) - latest pointer + up to 50 newest readings in the window
    sleep(days)       - up to 7 newest sessions; latest = newest session
    steps(days)       - per-date maximum of the cumulative counter, plus today
    stress(hours)     - latest pointer + up to 20 newest readings
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from src.biometrics.base import (
    EPOCH,
    Category,
    HeartRateReading,
    Reading,
    SleepReading,
    StepsReading,
    StressReading,
    reading_from_payload,
    to_iso,
    utc_now,
)
from src.biometrics.store.timeseries import StoredReading, TimeSeriesStore

logger = logging.getLogger("biometrics.query")

SOURCE = "health_sync_drive"

HEART_RATE_HISTORY_LIMIT = 50
SLEEP_SESSION_LIMIT = 7
STRESS_HISTORY_LIMIT = 20

DEFAULT_WINDOWS: dict[Category, int] = {
    Category.HEART_RATE: 24,  # hours
    Category.SLEEP: 1,  # days
    Category.STEPS: 1,  # days
    Category.STRESS: 24,  # hours
}


# ---------------------------------------------------------------------------
# Per-variant point views
# ---------------------------------------------------------------------------


def _hours(minutes: int | None) -> float | None:
    if not minutes:
        return None
    return round(minutes / 60, 1)


def _heart_rate_point(reading: HeartRateReading) -> dict:
    return {"time": reading.timestamp, "bpm": reading.bpm}


def _sleep_point(reading: SleepReading) -> dict:
    stages = None
    if reading.stages is not None:
        stages = {
            "awake": _hours(reading.stages.awake_minutes),
            "light": _hours(reading.stages.light_minutes),
            "deep": _hours(reading.stages.deep_minutes),
            "rem": _hours(reading.stages.rem_minutes),
        }
    return {
        "date": reading.timestamp.split("T", 1)[0],
        "start": reading.start_time,
        "end": reading.end_time,
        "total_hours": round(reading.total_hours, 1),
        "stages": stages,
    }


def _stress_point(reading: StressReading) -> dict:
    point: dict[str, Any] = {"time": reading.timestamp, "level": reading.level}
    if reading.label:
        point["label"] = reading.label
    return point


_POINT_VIEWS: dict[type, Callable[[Any], dict]] = {
    HeartRateReading: _heart_rate_point,
    SleepReading: _sleep_point,
    StressReading: _stress_point,
}


def point_view(reading: Reading) -> dict:
    """Render one reading as the JSON point used in history lists.

    Steps have no point form; their history is the per-date rollup from
    :func:`daily_step_totals`.
    """
    return _POINT_VIEWS[type(reading)](reading)


def daily_step_totals(readings: list[StepsReading]) -> list[dict]:
    """Group step samples by date, keeping the maximum count per date.

    The device counter is cumulative and resets daily, so the largest sample
    of a day approximates that day's total.  Newest date first.
    """
    per_date: dict[str, int] = {}
    for reading in readings:
        per_date[reading.date] = max(per_date.get(reading.date, 0), reading.count)
    return [
        {"date": day, "steps": steps}
        for day, steps in sorted(per_date.items(), key=lambda item: item[0], reverse=True)
    ]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class QueryEngine:
    """Category-specific windowed views."""

    def __init__(self, store: TimeSeriesStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def _window(self, category: Category, hours: float) -> list[Reading]:
        try:
            cutoff = max(EPOCH, self._clock() - timedelta(hours=hours))
        except OverflowError:
            cutoff = EPOCH
        stored = await self._store.list_since(category, to_iso(cutoff))
        return [self._typed(category, s) for s in stored]

    async def _latest(self, category: Category) -> Reading | None:
        stored = await self._store.get_latest(category)
        return self._typed(category, stored) if stored is not None else None

    @staticmethod
    def _typed(category: Category, stored: StoredReading) -> Reading:
        return reading_from_payload(category, stored.timestamp, stored.data)

    async def heart_rate(self, hours: float = 24) -> dict:
        readings = await self._window(Category.HEART_RATE, hours)
        latest = await self._latest(Category.HEART_RATE)
        return {
            "latest": point_view(latest) if latest else None,
            "history": [point_view(r) for r in readings[:HEART_RATE_HISTORY_LIMIT]],
            "period_hours": hours,
            "total_readings": len(readings),
            "source": SOURCE,
        }

    async def sleep(self, days: float = 1) -> dict:
        readings = await self._window(Category.SLEEP, days * 24)
        sessions = [point_view(r) for r in readings]
        return {
            "latest": sessions[0] if sessions else None,
            "sessions": sessions[:SLEEP_SESSION_LIMIT],
            "period_days": days,
            "source": SOURCE,
        }

    async def steps(self, days: float = 1) -> dict:
        readings = await self._window(Category.STEPS, days * 24)
        history = daily_step_totals([r for r in readings if isinstance(r, StepsReading)])
        today = self._clock().date().isoformat()
        today_steps = next((h["steps"] for h in history if h["date"] == today), 0)
        return {
            "today": today_steps,
            "history": history,
            "period_days": days,
            "source": SOURCE,
        }

    async def stress(self, hours: float = 24) -> dict:
        readings = await self._window(Category.STRESS, hours)
        latest = await self._latest(Category.STRESS)
        return {
            "latest": point_view(latest) if latest else None,
            "history": [point_view(r) for r in readings[:STRESS_HISTORY_LIMIT]],
            "period_hours": hours,
            "source": SOURCE,
        }

    async def readings(self, category: Category | str, window: float | None = None) -> dict:
        """Dispatch to the view for ``category``.

        Args:
            category: Category slug or enum.
            window:   Hours for heart_rate/stress, days for sleep/steps.
                      None or 0 selects the default window.
        """
        category = Category(category)
        size = window or DEFAULT_WINDOWS[category]
        views = {
            Category.HEART_RATE: self.heart_rate,
            Category.SLEEP: self.sleep,
            Category.STEPS: self.steps,
            Category.STRESS: self.stress,
        }
        return await views[category](size)

    async def status(self) -> dict:
        """Summarize sync recency, data availability and latest values."""
        latest = {c: await self._latest(c) for c in Category}
        last_sync = await self._store.get_cursor()

        hr = latest[Category.HEART_RATE]
        sleep = latest[Category.SLEEP]
        steps = latest[Category.STEPS]
        stress = latest[Category.STRESS]
        return {
            "connected": True,
            "source": SOURCE,
            "last_drive_sync": last_sync,
            "data_available": {c.value: latest[c] is not None for c in Category},
            "latest": {
                "heart_rate": hr.bpm if isinstance(hr, HeartRateReading) else None,
                "sleep_hours": round(sleep.total_hours, 1) if isinstance(sleep, SleepReading) else None,
                "steps": steps.count if isinstance(steps, StepsReading) else None,
                "stress": stress.level if isinstance(stress, StressReading) else None,
            },
        }
