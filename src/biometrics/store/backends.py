"""Key-value backends for the time-series store.

A backend offers exactly what the store needs: single-key get, put with an
optional per-key TTL, and prefix-scoped key listing in pages.  There is no
range index; callers page through every key under a prefix.

Two implementations:
    InMemoryBackend - process-local dict with lazy expiry (dev, tests)
    RedisBackend    - ``redis.asyncio`` client; TTL via ``SET ... EX``, listing via ``SCAN``
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger("biometrics.store.backends")

DEFAULT_PAGE_SIZE = 1000

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class StoreError(RuntimeError):
    """Raised when the underlying key-value store fails an I/O operation."""


@dataclass
class KeyPage:
    """One page of a prefix listing.

    Attributes:
        keys:   Keys on this page, in backend order.
        cursor: Opaque continuation token; None when the listing is complete.
    """

    keys: list[str] = field(default_factory=list)
    cursor: str | None = None

    @property
    def complete(self) -> bool:
        return self.cursor is None


class KeyValueBackend(ABC):
    """Abstract key-value store with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value at ``key``, or None if absent or expired."""

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Write ``value`` at ``key``, replacing any previous value.

        Args:
            key:         Full key.
            value:       Serialized value.
            ttl_seconds: Expiry in seconds; None keeps the key forever.
        """

    @abstractmethod
    async def list_keys(
        self, prefix: str, cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> KeyPage:
        """Return one page of live keys that start with ``prefix``."""

    async def close(self) -> None:
        return None


class InMemoryBackend(KeyValueBackend):
    """Process-local backend.  Expired keys are dropped lazily on access.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        return self._live(key)

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._data[key] = (value, expires_at)

    async def list_keys(
        self, prefix: str, cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> KeyPage:
        keys = sorted(
            k for k in list(self._data)
            if k.startswith(prefix) and (cursor is None or k > cursor) and self._live(k) is not None
        )
        page = keys[:limit]
        next_cursor = page[-1] if len(keys) > limit else None
        return KeyPage(keys=page, cursor=next_cursor)

    def __len__(self) -> int:
        return sum(1 for k in list(self._data) if self._live(k) is not None)


class RedisBackend(KeyValueBackend):
    """Redis-backed store.

    Usage::

        backend = RedisBackend.from_url("redis://localhost:6379/0")
        await backend.put("reading:heart_rate:2026-01-24T07:30:00.000Z", "{...}", ttl_seconds=2592000)
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisBackend:
        client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        logger.info("Redis backend configured: %s", url.split("@")[-1])
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            raise StoreError(f"Failed to read {key}: {exc}") from exc

    async def put(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise StoreError(f"Failed to write {key}: {exc}") from exc

    async def list_keys(
        self, prefix: str, cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> KeyPage:
        pattern = _GLOB_SPECIAL.sub(r"\\\1", prefix) + "*"
        try:
            next_cursor, keys = await self._client.scan(
                cursor=int(cursor or 0), match=pattern, count=limit
            )
        except RedisError as exc:
            raise StoreError(f"Failed to list {prefix}: {exc}") from exc
        next_cursor = int(next_cursor)
        return KeyPage(
            keys=list(keys),
            cursor=str(next_cursor) if next_cursor != 0 else None,
        )

    async def close(self) -> None:
        await self._client.aclose()


def create_backend(redis_url: str = "") -> KeyValueBackend:
    """Build the Redis backend when a URL is configured, else the in-memory one."""
    if redis_url:
        return RedisBackend.from_url(redis_url)
    logger.warning("No redis_url configured; readings are kept in process memory only")
    return InMemoryBackend()
