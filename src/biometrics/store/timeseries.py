"""TTL-bounded time-series store built on a key-value backend.

Key layout::

    reading:{category}:{timestamp}   one StoredReading, TTL = retention
    latest:{category}                most recently *written* reading, TTL = retention
    drive_last_sync                  sync cursor, no TTL

Writes are idempotent overwrites: putting the same (category, timestamp)
twice leaves one key holding the last value.  Windowed listing compares
timestamps as strings, which is chronological because every producer emits
canonical fixed-width ISO-8601 UTC.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from src.biometrics.base import Category, Reading
from src.biometrics.store.backends import DEFAULT_PAGE_SIZE, KeyValueBackend

logger = logging.getLogger("biometrics.store")

DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60  # 30 days
CURSOR_KEY = "drive_last_sync"


def reading_prefix(category: Category | str) -> str:
    return f"reading:{Category(category).value}:"


def reading_key(category: Category | str, timestamp: str) -> str:
    return f"{reading_prefix(category)}{timestamp}"


def latest_key(category: Category | str) -> str:
    return f"latest:{Category(category).value}"


@dataclass(frozen=True)
class StoredReading:
    """A reading payload as persisted, keyed by its timestamp."""

    timestamp: str
    data: dict


def _dumps(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


class TimeSeriesStore:
    """Per-category reading history plus a latest pointer and the sync cursor.

    Each operation is independently atomic at the backend; nothing here is
    transactional across keys.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._backend = backend
        self._ttl_seconds = ttl_seconds
        self._page_size = page_size

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    async def put(self, category: Category | str, timestamp: str, payload: dict) -> None:
        """Write a reading and move the category's latest pointer to it.

        The latest pointer is overwritten unconditionally, so it tracks write
        order rather than timestamp order.
        """
        await self._backend.put(reading_key(category, timestamp), _dumps(payload), self._ttl_seconds)
        await self._backend.put(
            latest_key(category),
            _dumps({"timestamp": timestamp, "data": payload}),
            self._ttl_seconds,
        )

    async def put_reading(self, reading: Reading) -> None:
        await self.put(reading.CATEGORY, reading.timestamp, reading.to_payload())

    async def list_since(self, category: Category | str, cutoff: str) -> list[StoredReading]:
        """Return every reading with timestamp >= ``cutoff``, newest first.

        Pages through the whole key space under the category prefix.  A failed
        read aborts the listing.
        """
        prefix = reading_prefix(category)
        found: dict[str, StoredReading] = {}
        cursor: str | None = None
        pages = 0

        while True:
            page = await self._backend.list_keys(prefix, cursor=cursor, limit=self._page_size)
            pages += 1
            for key in page.keys:
                timestamp = key[len(prefix):]
                if timestamp < cutoff or timestamp in found:
                    continue
                value = await self._backend.get(key)
                if value is None:
                    # expired between listing and read
                    continue
                found[timestamp] = StoredReading(timestamp=timestamp, data=json.loads(value))
            if page.complete:
                break
            cursor = page.cursor

        logger.debug(
            "list_since %s >= %s: %d readings over %d page(s)",
            Category(category).value, cutoff, len(found), pages,
        )
        return sorted(found.values(), key=lambda r: r.timestamp, reverse=True)

    async def get_latest(self, category: Category | str) -> StoredReading | None:
        value = await self._backend.get(latest_key(category))
        if value is None:
            return None
        decoded = json.loads(value)
        return StoredReading(timestamp=decoded["timestamp"], data=decoded["data"])

    async def get_cursor(self) -> str | None:
        return await self._backend.get(CURSOR_KEY)

    async def set_cursor(self, value: str) -> None:
        await self._backend.put(CURSOR_KEY, value, None)

    async def close(self) -> None:
        await self._backend.close()
