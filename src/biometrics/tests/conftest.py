"""Shared fixtures and fake collaborators for biometrics tests."""

from __future__ import annotations

import os

# Settings() needs the API key before src.main is imported anywhere.
os.environ.setdefault("BIOMETRICS_API_KEY", "test-key")

from datetime import datetime, timedelta, timezone

import pytest

from src.biometrics.base import Category
from src.biometrics.store import InMemoryBackend, TimeSeriesStore
from src.biometrics.sync.coordinator import RemoteFile, SyncCoordinator
from src.services.drive import DriveError

TEST_API_KEY = "test-key"
NOW = datetime(2026, 1, 24, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Sample exports
# ---------------------------------------------------------------------------

HEART_RATE_CSV = """Date,Time,Heart rate,Source
2026.01.24 07:30:00,,72,Galaxy Fit3
2026.01.24 07:31:00,,75,Galaxy Fit3
2026.01.24 07:32:00,,n/a,Galaxy Fit3
2026.01.24 07:33:00,,80,Galaxy Fit3
2026.01.24 07:34:00,,78,Galaxy Fit3
"""

STEPS_CSV = """Date,Time,Steps,Source
2026.01.24 10:00:00,,120,Galaxy Fit3
2026.01.24 14:00:00,,95,Galaxy Fit3
2026.01.24 18:00:00,,310,Galaxy Fit3
"""

SLEEP_CSV = """Date,Time,Duration in seconds,Sleep stage
2026.01.24 01:00:00,,30,light
2026.01.24 01:00:30,,30,deep
2026.01.24 01:01:00,,40,rem
"""

STRESS_CSV = """Date,Time,Stress,Label
2026.01.24 09:00:00,,35,normal
2026.01.24 09:10:00,,62.5,moderate
"""


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock; callable as a datetime or epoch-seconds source."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def seconds(self) -> float:
        return self.now.timestamp()

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@pytest.fixture
def backend(clock: FakeClock) -> InMemoryBackend:
    return InMemoryBackend(clock=clock.seconds)


@pytest.fixture
def store(backend: InMemoryBackend) -> TimeSeriesStore:
    return TimeSeriesStore(backend)


# ---------------------------------------------------------------------------
# Remote collaborators
# ---------------------------------------------------------------------------


class FakeCredentials:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0

    async def get_access_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return "fake-token"


class FakeSource:
    """In-memory remote folder tree.

    ``folders`` maps folder id to a list of (RemoteFile, content), newest first.
    Downloading an id in ``failing`` raises DriveError.
    """

    def __init__(self) -> None:
        self.folders: dict[str, list[tuple[RemoteFile, str]]] = {}
        self.failing: set[str] = set()
        self.downloads: list[str] = []

    def add(self, folder_id: str, name: str, content: str, modified: datetime) -> RemoteFile:
        remote = RemoteFile(id=f"{folder_id}/{name}", name=name, modified_time=modified)
        files = self.folders.setdefault(folder_id, [])
        files.append((remote, content))
        files.sort(key=lambda item: item[0].modified_time, reverse=True)
        return remote

    async def list_recent_files(self, access_token: str, folder_id: str, limit: int = 2) -> list[RemoteFile]:
        return [remote for remote, _ in self.folders.get(folder_id, [])][:limit]

    async def download_file(self, access_token: str, file_id: str) -> str:
        self.downloads.append(file_id)
        if file_id in self.failing:
            raise DriveError("Failed to download file: 404")
        for files in self.folders.values():
            for remote, content in files:
                if remote.id == file_id:
                    return content
        raise DriveError("Failed to download file: 404")


FOLDERS = {
    Category.HEART_RATE: "hr-folder",
    Category.SLEEP: "sleep-folder",
    Category.STEPS: "steps-folder",
    Category.STRESS: "stress-folder",
}


@pytest.fixture
def credentials() -> FakeCredentials:
    return FakeCredentials()


@pytest.fixture
def source(clock: FakeClock) -> FakeSource:
    fake = FakeSource()
    modified = clock.now - timedelta(hours=1)
    fake.add(FOLDERS[Category.HEART_RATE], "heart_rate.csv", HEART_RATE_CSV, modified)
    fake.add(FOLDERS[Category.SLEEP], "sleep.csv", SLEEP_CSV, modified)
    fake.add(FOLDERS[Category.STEPS], "steps.csv", STEPS_CSV, modified)
    fake.add(FOLDERS[Category.STRESS], "stress.csv", STRESS_CSV, modified)
    return fake


@pytest.fixture
def coordinator(
    store: TimeSeriesStore, credentials: FakeCredentials, source: FakeSource, clock: FakeClock
) -> SyncCoordinator:
    return SyncCoordinator(
        store=store,
        credentials=credentials,
        source=source,
        folders=FOLDERS,
        clock=clock,
    )
