"""Tool catalogue and dispatch for the JSON-RPC tool endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable

from src.biometrics.base import Category
from src.biometrics.query import DEFAULT_WINDOWS
from src.biometrics.service import BiometricsService

logger = logging.getLogger("biometrics.tools")

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "biometrics-cloud"


class UnknownToolError(LookupError):
    """Raised for a tools/call naming a tool that does not exist."""


class InvalidToolArguments(ValueError):
    """Raised when tool arguments have the wrong type."""


def _window_schema(param: str, unit: str, default: int) -> dict:
    return {
        "type": "object",
        "properties": {
            param: {
                "type": "number",
                "description": f"{unit} of history (default {default})",
                "default": default,
            },
        },
    }


TOOLS: list[dict[str, Any]] = [
    {
        "name": "biometrics_heart_rate",
        "description": "Get heart rate readings synced from the wearable",
        "inputSchema": _window_schema("hours", "Hours", 24),
    },
    {
        "name": "biometrics_sleep",
        "description": "Get sleep sessions: duration and stages (light, deep, REM, awake)",
        "inputSchema": _window_schema("days", "Days", 1),
    },
    {
        "name": "biometrics_steps",
        "description": "Get daily step counts",
        "inputSchema": _window_schema("days", "Days", 1),
    },
    {
        "name": "biometrics_stress",
        "description": "Get stress level readings",
        "inputSchema": _window_schema("hours", "Hours", 24),
    },
    {
        "name": "biometrics_status",
        "description": "Check biometrics system status and last sync time",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "biometrics_sync",
        "description": "Trigger a manual sync from Google Drive",
        "inputSchema": {
            "type": "object",
            "properties": {
                "force": {
                    "type": "boolean",
                    "description": "Re-read files even if unchanged since the last sync",
                    "default": False,
                },
            },
        },
    },
]

TOOL_NAMES: list[str] = [t["name"] for t in TOOLS]

_WINDOW_TOOLS: dict[str, tuple[Category, str]] = {
    "biometrics_heart_rate": (Category.HEART_RATE, "hours"),
    "biometrics_sleep": (Category.SLEEP, "days"),
    "biometrics_steps": (Category.STEPS, "days"),
    "biometrics_stress": (Category.STRESS, "hours"),
}


def _window_arg(arguments: dict[str, Any], param: str, category: Category) -> float:
    value = arguments.get(param)
    if value is None:
        return DEFAULT_WINDOWS[category]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidToolArguments(f"'{param}' must be a number")
    # Non-positive windows fall back to the default
    return value if value > 0 else DEFAULT_WINDOWS[category]


def _flag_arg(arguments: dict[str, Any], param: str) -> bool:
    value = arguments.get(param)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidToolArguments(f"'{param}' must be a boolean")
    return value


async def call_tool(service: BiometricsService, name: str, arguments: dict[str, Any] | None = None) -> Any:
    """Run a tool by name and return its JSON-serializable result.

    Raises:
        UnknownToolError: If ``name`` is not in the catalogue.
        InvalidToolArguments: If an argument has the wrong type.
    """
    arguments = arguments or {}

    if name in _WINDOW_TOOLS:
        category, param = _WINDOW_TOOLS[name]
        return await service.get_readings(category, _window_arg(arguments, param, category))

    handlers: dict[str, Callable[[], Awaitable[Any]]] = {
        "biometrics_status": service.get_status,
        "biometrics_sync": lambda: service.sync(force=_flag_arg(arguments, "force")),
    }
    if name not in handlers:
        raise UnknownToolError(f"Unknown tool: {name}")
    return await handlers[name]()


def text_content(result: Any) -> dict[str, Any]:
    """Wrap a tool result as a single text content block of pretty-printed JSON."""
    return {"content": [{"type": "text", "text": json.dumps(result, indent=2)}]}
