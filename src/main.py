"""Biometrics Cloud: FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.biometrics.service import BiometricsService
from src.biometrics.sync.scheduler import SyncScheduler
from src.config import Settings, get_settings
from src.routers import debug, health, ingest, mcp, readings, sync

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("biometrics")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info(
        "Starting %s v%s [%s]",
        settings.app_name,
        settings.app_version,
        settings.environment,
    )

    if getattr(app.state, "service", None) is None:
        app.state.service = BiometricsService.from_settings(settings)
    service: BiometricsService = app.state.service

    scheduler: SyncScheduler | None = None
    if settings.sync_interval_seconds > 0:
        scheduler = SyncScheduler(service.sync, interval_seconds=settings.sync_interval_seconds)
        scheduler.start()
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
    await service.close()
    logger.info("%s shut down", settings.app_name)


# ---------- App factory ----------

def create_app(
    settings: Settings | None = None,
    service: BiometricsService | None = None,
) -> FastAPI:
    """Build the app.

    Args:
        settings: Overrides ``get_settings()`` (tests pass their own).
        service:  Pre-built service; when omitted the lifespan builds one from settings.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Incremental Drive CSV sync into a TTL time-series store, with "
            "windowed biometrics views over HTTP and JSON-RPC tools."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "Authorization"],
    )

    # ---------- Public ----------
    app.include_router(health.router)
    app.include_router(readings.router)
    app.include_router(mcp.router)

    # ---------- API key required ----------
    app.include_router(sync.router)
    app.include_router(ingest.router)
    app.include_router(debug.router)

    return app


app = create_app()
