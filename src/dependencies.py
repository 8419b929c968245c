"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.biometrics.service import BiometricsService
from src.config import Settings


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with (set on ``app.state`` by the factory)."""
    return request.app.state.settings


def get_service(request: Request) -> BiometricsService:
    """The service built during startup.

    Raises a 503 if the lifespan has not wired it up yet.
    """
    service: BiometricsService | None = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return service


def _presented_key(request: Request) -> str | None:
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return api_key
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):]
    return None


async def require_api_key(
    request: Request, settings: Annotated[Settings, Depends(get_app_settings)]
) -> None:
    """Reject the request with 401 unless it carries the configured API key.

    Accepts either ``X-API-Key: <key>`` or ``Authorization: Bearer <key>``.
    """
    presented = _presented_key(request)
    expected = settings.biometrics_api_key
    if not presented or not expected or not hmac.compare_digest(presented.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


# Annotated shortcuts for route signatures
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Service = Annotated[BiometricsService, Depends(get_service)]
ApiKey = Depends(require_api_key)
