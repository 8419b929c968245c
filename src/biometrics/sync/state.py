"""Sync cursor state and its single owner.

The cursor is an explicit value: a pass receives a ``SyncState`` and returns
the advanced one, and only ``SyncStateOwner`` persists it.  Passes are not
serialized against each other; the owner serializes *commits* and refuses to
move the cursor backwards, so two overlapping passes that finish out of
order cannot regress it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from src.biometrics.base import EPOCH, parse_iso, to_iso
from src.biometrics.store.timeseries import TimeSeriesStore

logger = logging.getLogger("biometrics.sync.state")


@dataclass(frozen=True)
class SyncState:
    """Versioned sync cursor.

    Attributes:
        cursor:  UTC instant the last successful pass finished (None = never).
        version: Incremented on every committed advance.
    """

    cursor: datetime | None = None
    version: int = 0

    @property
    def cutoff(self) -> datetime:
        return self.cursor or EPOCH

    def advanced(self, finished_at: datetime) -> SyncState:
        return SyncState(cursor=finished_at, version=self.version + 1)

    @property
    def cursor_iso(self) -> str | None:
        return to_iso(self.cursor) if self.cursor else None


class SyncStateOwner:
    """Loads and commits the persisted sync cursor.

    The store is the source of truth: every snapshot and every commit
    re-reads the persisted cursor, so owners in separate workers sharing one
    Redis store compare against each other's commits rather than a stale
    local copy.  Only the version counter is process-local.

    Usage::

        owner = SyncStateOwner(store)
        state = await owner.snapshot()
        outcome = await coordinator.run_pass(state)
        await owner.commit(outcome.state)
    """

    def __init__(self, store: TimeSeriesStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()
        self._version = 0

    async def _load(self) -> SyncState:
        raw = await self._store.get_cursor()
        if not raw:
            return SyncState(version=self._version)
        try:
            return SyncState(cursor=parse_iso(raw), version=self._version)
        except ValueError:
            logger.warning("Ignoring unparseable sync cursor %r", raw)
            return SyncState(version=self._version)

    async def snapshot(self) -> SyncState:
        """Return the state currently persisted in the store."""
        async with self._lock:
            return await self._load()

    async def commit(self, proposed: SyncState) -> SyncState:
        """Persist an advanced state unless it would move the cursor backwards.

        The comparison is against the cursor persisted right now, not the one
        the pass started from.

        Returns:
            The state in force after the commit.
        """
        async with self._lock:
            current = await self._load()
            if proposed.cursor is None:
                return current
            if current.cursor is not None and proposed.cursor <= current.cursor:
                logger.info(
                    "Keeping sync cursor %s; finished pass proposed older %s",
                    current.cursor_iso, to_iso(proposed.cursor),
                )
                return current

            await self._store.set_cursor(to_iso(proposed.cursor))
            self._version += 1
            committed = SyncState(cursor=proposed.cursor, version=self._version)
            logger.info("Sync cursor advanced to %s (v%d)", committed.cursor_iso, committed.version)
            return committed
