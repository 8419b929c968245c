"""Time-series storage for biometric readings.

Modules:
    backends   - Key-value backends (in-memory, Redis) with per-key TTL
    timeseries - Reading history, latest pointers and the sync cursor
"""

from src.biometrics.store.backends import (
    InMemoryBackend,
    KeyPage,
    KeyValueBackend,
    RedisBackend,
    StoreError,
    create_backend,
)
from src.biometrics.store.timeseries import (
    CURSOR_KEY,
    DEFAULT_TTL_SECONDS,
    StoredReading,
    TimeSeriesStore,
    latest_key,
    reading_key,
)

__all__ = [
    "CURSOR_KEY",
    "DEFAULT_TTL_SECONDS",
    "InMemoryBackend",
    "KeyPage",
    "KeyValueBackend",
    "RedisBackend",
    "StoreError",
    "StoredReading",
    "TimeSeriesStore",
    "create_backend",
    "latest_key",
    "reading_key",
]
