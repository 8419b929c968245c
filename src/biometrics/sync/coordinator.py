"""Incremental pull from the remote file store into the time-series store.

One pass:
1. Obtain a bearer credential (failure aborts the pass).
2. Cutoff = epoch when forced, else the state's cursor.
3. For each category with a configured folder, strictly in order: list the
   two most recently modified files, keep those modified after the cutoff.
4. Download, decode, cap, and ``put`` every reading.
5. Only after every category succeeded, return the state advanced to the
   wall-clock time the pass finished.

Any error propagates and no advanced state is produced, so the whole window
is reprocessed next time.  Readings already written stay written; writes are
idempotent overwrites, so re-processing costs work but never duplicates.
There is no retry inside a pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Mapping, Protocol

from src.biometrics.base import EPOCH, Category, to_iso, utc_now
from src.biometrics.decoders import RULES, DecodeRule, decode
from src.biometrics.store.timeseries import TimeSeriesStore
from src.biometrics.sync.state import SyncState

logger = logging.getLogger("biometrics.sync.coordinator")

SYNC_ORDER: tuple[Category, ...] = (
    Category.HEART_RATE,
    Category.SLEEP,
    Category.STEPS,
    Category.STRESS,
)

# Files considered per category per pass, newest first.
RECENT_FILE_LIMIT = 2


@dataclass(frozen=True)
class RemoteFile:
    """A file entry returned by the remote listing."""

    id: str
    name: str
    modified_time: datetime


class CredentialProvider(Protocol):
    async def get_access_token(self) -> str: ...


class RemoteFileSource(Protocol):
    async def list_recent_files(
        self, access_token: str, folder_id: str, limit: int = RECENT_FILE_LIMIT
    ) -> list[RemoteFile]: ...

    async def download_file(self, access_token: str, file_id: str) -> str: ...


@dataclass
class SyncOutcome:
    """Result of one completed pass.

    Attributes:
        state:       The advanced state to hand to the state owner.
        counts:      Readings written per category slug.
        files:       Names of the files that were downloaded and decoded.
        started_at:  UTC start of the pass.
        finished_at: UTC end of the pass (== state.cursor).
    """

    state: SyncState
    counts: dict[str, int]
    files: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None


class SyncCoordinator:
    """Run sync passes against a remote file source."""

    def __init__(
        self,
        store: TimeSeriesStore,
        credentials: CredentialProvider,
        source: RemoteFileSource,
        folders: Mapping[Category, str | None],
        clock: Callable[[], datetime] = utc_now,
        rules: Mapping[Category, DecodeRule] = RULES,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store:       Destination time-series store.
            credentials: Issues bearer tokens for the remote store.
            source:      Lists and downloads remote files.
            folders:     Remote folder id per category; missing or empty disables the category.
            clock:       Returns the current UTC time.
            rules:       Decode rule per category.
        """
        self._store = store
        self._credentials = credentials
        self._source = source
        self._folders = dict(folders)
        self._clock = clock
        self._rules = dict(rules)

    @property
    def enabled_categories(self) -> list[Category]:
        return [c for c in SYNC_ORDER if self._folders.get(c)]

    async def run_pass(self, state: SyncState, *, force: bool = False) -> SyncOutcome:
        """Execute one full pass.

        Args:
            state: Current sync state; its cursor is the cutoff unless forced.
            force: Ignore the cursor and consider every listed file.

        Returns:
            SyncOutcome carrying the advanced state and per-category counts.

        Raises:
            Whatever the credential provider, remote source or store raises.
        """
        started_at = self._clock()
        cutoff = EPOCH if force else state.cutoff
        logger.info(
            "Sync pass starting (force=%s, cutoff=%s, categories=%s)",
            force, to_iso(cutoff), [c.value for c in self.enabled_categories],
        )

        counts = {c.value: 0 for c in SYNC_ORDER}
        files: list[str] = []
        try:
            access_token = await self._credentials.get_access_token()
            for category in SYNC_ORDER:
                folder_id = self._folders.get(category)
                if not folder_id:
                    continue
                counts[category.value] = await self._sync_category(
                    category, folder_id, access_token, cutoff, files
                )
        except Exception as exc:
            logger.error("Sync pass failed; cursor stays at %s: %s", state.cursor_iso, exc)
            raise

        finished_at = self._clock()
        logger.info(
            "Sync pass complete in %.1fs: %s",
            (finished_at - started_at).total_seconds(), counts,
        )
        return SyncOutcome(
            state=state.advanced(finished_at),
            counts=counts,
            files=files,
            started_at=started_at,
            finished_at=finished_at,
        )

    async def _sync_category(
        self,
        category: Category,
        folder_id: str,
        access_token: str,
        cutoff: datetime,
        files: list[str],
    ) -> int:
        rule = self._rules[category]
        listed = await self._source.list_recent_files(access_token, folder_id, limit=RECENT_FILE_LIMIT)
        written = 0

        for remote in listed[:RECENT_FILE_LIMIT]:
            if remote.modified_time <= cutoff:
                logger.debug("%s: %s unchanged since cutoff", category.value, remote.name)
                continue

            text = await self._source.download_file(access_token, remote.id)
            readings = rule.capped(decode(rule, text))
            logger.info("%s: %s decoded %d reading(s)", category.value, remote.name, len(readings))
            files.append(remote.name)

            for reading in readings:
                await self._store.put_reading(reading)
                written += 1

        return written
