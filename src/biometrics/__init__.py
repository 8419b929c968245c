"""Biometrics sync engine and time-series store.

Pulls CSV exports from Drive folders, decodes them into typed readings and
keeps them in a TTL key-value store that the query engine reads back.

Subpackages:
    store/ : Key-value backends (in-memory, Redis) and the time-series layer
    sync/  : Sync coordinator, cursor owner and periodic scheduler

Core modules:
    base     : Categories, typed readings and timestamp helpers
    decoders : Per-category CSV decode rules
    query    : Windowed read views and status summary
    service  : Facade used by the HTTP and tool-call surfaces
    tools    : Tool catalogue and dispatch for the JSON-RPC endpoint
"""

from src.biometrics.base import (
    Category,
    HeartRateReading,
    Reading,
    ReadingValidationError,
    SleepReading,
    SleepStages,
    StepsReading,
    StressReading,
)
from src.biometrics.decoders import RULES, DecodeRule, decode, decode_category

__all__ = [
    "Category",
    "DecodeRule",
    "HeartRateReading",
    "RULES",
    "Reading",
    "ReadingValidationError",
    "SleepReading",
    "SleepStages",
    "StepsReading",
    "StressReading",
    "decode",
    "decode_category",
]
