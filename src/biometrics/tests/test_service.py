"""Tests for the service facade and the periodic sync scheduler."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.biometrics.base import Category, HeartRateReading, StepsReading
from src.biometrics.query import QueryEngine
from src.biometrics.service import BiometricsService
from src.biometrics.store import InMemoryBackend, TimeSeriesStore
from src.biometrics.sync.coordinator import SyncCoordinator
from src.biometrics.sync.scheduler import SyncScheduler
from src.biometrics.tests.conftest import FakeClock, FakeSource
from src.config import Settings
from src.services.drive import DriveError


@pytest.fixture
def service(store: TimeSeriesStore, coordinator: SyncCoordinator, clock: FakeClock) -> BiometricsService:
    return BiometricsService(store=store, coordinator=coordinator, query=QueryEngine(store, clock=clock))


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class TestSync:
    @pytest.mark.asyncio
    async def test_sync_commits_cursor(self, service: BiometricsService, store: TimeSeriesStore) -> None:
        counts = await service.sync()
        assert counts == {"heart_rate": 4, "sleep": 1, "steps": 3, "stress": 2}
        assert await store.get_cursor() == "2026-01-24T12:00:00.000Z"
        assert service.last_outcome is not None

    @pytest.mark.asyncio
    async def test_second_incremental_sync_is_a_no_op(
        self, service: BiometricsService, source: FakeSource, clock: FakeClock
    ) -> None:
        await service.sync()
        clock.advance(minutes=15)
        counts = await service.sync()
        assert sum(counts.values()) == 0
        assert len(source.downloads) == 4

    @pytest.mark.asyncio
    async def test_failed_sync_leaves_cursor(
        self, service: BiometricsService, source: FakeSource, store: TimeSeriesStore
    ) -> None:
        source.failing.add("steps-folder/steps.csv")
        with pytest.raises(DriveError):
            await service.sync()
        assert await store.get_cursor() is None

    @pytest.mark.asyncio
    async def test_force_after_success_rewrites(self, service: BiometricsService, clock: FakeClock) -> None:
        await service.sync()
        clock.advance(minutes=1)
        counts = await service.sync(force=True)
        assert counts["heart_rate"] == 4


class TestPush:
    @pytest.mark.asyncio
    async def test_single_reading(self, service: BiometricsService, store: TimeSeriesStore) -> None:
        stored = await service.push(HeartRateReading(timestamp="2026-01-24T11:00:00.000Z", bpm=66))
        assert stored == 1
        latest = await store.get_latest(Category.HEART_RATE)
        assert latest is not None and latest.data["bpm"] == 66

    @pytest.mark.asyncio
    async def test_batch(self, service: BiometricsService, store: TimeSeriesStore) -> None:
        stored = await service.push([
            StepsReading(timestamp="2026-01-24T10:00:00.000Z", count=100),
            StepsReading(timestamp="2026-01-24T11:00:00.000Z", count=250),
        ])
        assert stored == 2
        view = await service.get_readings("steps")
        assert view["today"] == 250


class TestOverview:
    @pytest.mark.asyncio
    async def test_empty(self, service: BiometricsService) -> None:
        assert await service.overview() == {"has_data": False, "last_reading": None, "last_drive_sync": None}

    @pytest.mark.asyncio
    async def test_after_sync(self, service: BiometricsService) -> None:
        await service.sync()
        overview = await service.overview()
        assert overview["has_data"] is True
        assert overview["last_reading"] == "2026-01-24T07:34:00.000Z"
        assert overview["last_drive_sync"] == "2026-01-24T12:00:00.000Z"


class TestListFolder:
    @pytest.mark.asyncio
    async def test_not_configured(self, service: BiometricsService) -> None:
        with pytest.raises(DriveError, match="not configured"):
            await service.list_folder("abc")

    @pytest.mark.asyncio
    async def test_defaults_to_heart_rate_folder(
        self, store: TimeSeriesStore, coordinator: SyncCoordinator
    ) -> None:
        credentials = AsyncMock()
        credentials.get_access_token = AsyncMock(return_value="tok")
        drive = AsyncMock()
        drive.list_folder = AsyncMock(return_value={"files": []})
        service = BiometricsService(
            store=store, coordinator=coordinator, credentials=credentials, drive=drive, default_folder="hr-folder"
        )

        listing = await service.list_folder()

        assert listing == {"folderId": "hr-folder", "files": []}
        drive.list_folder.assert_awaited_once_with("tok", "hr-folder")


class TestFromSettings:
    def test_drive_folder_lookup(self) -> None:
        settings = Settings(biometrics_api_key="k", drive_folder_steps="steps-id")
        assert settings.drive_folder("steps") == "steps-id"
        assert settings.drive_folder(Category.STRESS) is None
        assert settings.drive_folders[Category.STEPS] == "steps-id"

    @pytest.mark.asyncio
    async def test_wiring(self) -> None:
        settings = Settings(
            biometrics_api_key="k",
            drive_folder_heart_rate="hr",
            drive_folder_sleep="sl",
            reading_ttl_seconds=60,
        )
        service = BiometricsService.from_settings(settings, backend=InMemoryBackend())
        try:
            assert service.store.ttl_seconds == 60
            assert service.coordinator.enabled_categories == [Category.HEART_RATE, Category.SLEEP]
        finally:
            await service.close()


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class TestSyncScheduler:
    @pytest.mark.asyncio
    async def test_tick_records_success(self) -> None:
        run = AsyncMock(return_value={"heart_rate": 3})
        scheduler = SyncScheduler(run, interval_seconds=60)

        result = await scheduler.tick()

        assert result.status == "success"
        assert result.counts == {"heart_rate": 3}
        assert scheduler.last_result is result

    @pytest.mark.asyncio
    async def test_tick_swallows_failures(self) -> None:
        run = AsyncMock(side_effect=DriveError("Failed to list files: quota"))
        scheduler = SyncScheduler(run, interval_seconds=60)

        result = await scheduler.tick()

        assert result.status == "error"
        assert "quota" in (result.error or "")

    @pytest.mark.asyncio
    async def test_loop_runs_until_stopped(self) -> None:
        ran = asyncio.Event()

        async def run() -> dict[str, int]:
            ran.set()
            return {}

        scheduler = SyncScheduler(run, interval_seconds=0)
        scheduler.start()
        assert scheduler.running
        await asyncio.wait_for(ran.wait(), timeout=1)
        await scheduler.stop()
        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        await SyncScheduler(AsyncMock(), interval_seconds=60).stop()
