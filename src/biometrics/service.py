"""Biometrics service: the operations exposed to the HTTP and RPC surfaces.

Wires the time-series store, sync coordinator, cursor owner and query engine
together. The four core operations are:

    sync(force)                    one incremental pass, cursor committed on success
    get_readings(category, window) category-specific windowed view
    get_status()                   last sync time, availability, latest values
    push(readings)                 direct writes that bypass the coordinator
"""

from __future__ import annotations

import logging
from typing import Iterable

import httpx

from src.biometrics.base import READING_TYPES, Category, Reading
from src.biometrics.query import QueryEngine
from src.biometrics.store import KeyValueBackend, TimeSeriesStore, create_backend
from src.biometrics.sync.coordinator import SyncCoordinator, SyncOutcome
from src.biometrics.sync.state import SyncStateOwner
from src.config import Settings
from src.services.drive import DriveClient, DriveError, ServiceAccountCredentials

logger = logging.getLogger("biometrics.service")


class BiometricsService:
    """Facade over the sync engine and time-series store."""

    def __init__(
        self,
        store: TimeSeriesStore,
        coordinator: SyncCoordinator,
        state_owner: SyncStateOwner | None = None,
        query: QueryEngine | None = None,
        credentials: ServiceAccountCredentials | None = None,
        drive: DriveClient | None = None,
        default_folder: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            store:          Time-series store shared by sync, push and queries.
            coordinator:    Runs sync passes.
            state_owner:    Owner of the persisted cursor (built from store if omitted).
            query:          Query engine (built from store if omitted).
            credentials:    Drive credentials, used by folder diagnostics.
            drive:          Drive client, used by folder diagnostics.
            default_folder: Folder listed when diagnostics get no folder id.
            http_client:    Shared httpx client closed by ``close()``.
        """
        self.store = store
        self.coordinator = coordinator
        self.state_owner = state_owner or SyncStateOwner(store)
        self.query = query or QueryEngine(store)
        self._credentials = credentials
        self._drive = drive
        self._default_folder = default_folder
        self._http_client = http_client
        self.last_outcome: SyncOutcome | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend: KeyValueBackend | None = None,
    ) -> BiometricsService:
        """Build the production wiring: Drive over httpx, Redis or in-memory store."""
        http_client = httpx.AsyncClient(timeout=30.0)
        credentials = ServiceAccountCredentials.from_settings(settings, http_client=http_client)
        drive = DriveClient(http_client=http_client)
        store = TimeSeriesStore(
            backend or create_backend(settings.redis_url),
            ttl_seconds=settings.reading_ttl_seconds,
        )
        coordinator = SyncCoordinator(
            store=store,
            credentials=credentials,
            source=drive,
            folders=settings.drive_folders,
        )
        logger.info(
            "Biometrics service ready (backend=%s, categories=%s)",
            type(store.backend).__name__,
            [c.value for c in coordinator.enabled_categories],
        )
        return cls(
            store=store,
            coordinator=coordinator,
            credentials=credentials,
            drive=drive,
            default_folder=settings.drive_folder(Category.HEART_RATE),
            http_client=http_client,
        )

    # ---------- Core operations ----------

    async def sync(self, force: bool = False) -> dict[str, int]:
        """Run one sync pass and commit the advanced cursor.

        Errors propagate unchanged and leave the cursor where it was.

        Returns:
            Readings written per category.  Besides heart_rate, sleep and
            steps the mapping always carries ``stress``; categories without
            a configured folder report 0.
        """
        state = await self.state_owner.snapshot()
        outcome = await self.coordinator.run_pass(state, force=force)
        await self.state_owner.commit(outcome.state)
        self.last_outcome = outcome
        return outcome.counts

    async def get_readings(self, category: Category | str, window: float | None = None) -> dict:
        return await self.query.readings(category, window)

    async def get_status(self) -> dict:
        return await self.query.status()

    async def push(self, readings: Reading | Iterable[Reading]) -> int:
        """Write one or many externally constructed readings straight to the store.

        Returns:
            Number of readings written.
        """
        if isinstance(readings, tuple(READING_TYPES.values())):
            batch = [readings]
        else:
            batch = list(readings)
        for reading in batch:
            await self.store.put_reading(reading)
        logger.info("Pushed %d reading(s)", len(batch))
        return len(batch)

    # ---------- Diagnostics ----------

    async def overview(self) -> dict:
        """Liveness summary keyed off the heart-rate latest pointer."""
        latest = await self.store.get_latest(Category.HEART_RATE)
        return {
            "has_data": latest is not None,
            "last_reading": latest.timestamp if latest else None,
            "last_drive_sync": await self.store.get_cursor(),
        }

    async def list_folder(self, folder_id: str | None = None) -> dict:
        """List every file in a Drive folder, defaulting to the heart-rate folder.

        Raises:
            DriveError: If Drive is not wired up or the listing fails.
        """
        folder = folder_id or self._default_folder
        if self._credentials is None or self._drive is None:
            raise DriveError("Drive client is not configured")
        if not folder:
            raise DriveError("No folder id given and no default folder configured")
        access_token = await self._credentials.get_access_token()
        listing = await self._drive.list_folder(access_token, folder)
        return {"folderId": folder, **listing}

    async def close(self) -> None:
        await self.store.close()
        if self._http_client is not None:
            await self._http_client.aclose()
