"""Health check and service info endpoints: public, no auth required."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from src.biometrics.query import SOURCE
from src.biometrics.tools import SERVER_NAME, TOOL_NAMES
from src.dependencies import AppSettings, Service

router = APIRouter(tags=["system"])
logger = logging.getLogger("biometrics.health")


@router.get("/health")
async def health_check(settings: AppSettings, service: Service) -> dict:
    """Liveness probe. Also reports whether any heart-rate data has arrived."""
    overview = await service.overview()
    return {
        "status": "ok",
        "service": SERVER_NAME,
        "version": settings.app_version,
        "environment": settings.environment,
        "source": SOURCE,
        **overview,
    }


@router.get("/")
async def info(settings: AppSettings, service: Service) -> dict:
    overview = await service.overview()
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "source": SOURCE,
        "has_data": overview["has_data"],
        "last_sync": overview["last_drive_sync"],
        "endpoints": {
            "mcp": "/mcp (POST)",
            "sse": "/sse (GET)",
            "sync": "/sync (POST, requires API key)",
            "push": "/push (POST, requires API key)",
            "readings": "/readings/{category} (GET)",
            "status": "/status (GET)",
            "health": "/health (GET)",
        },
        "tools": TOOL_NAMES,
    }
