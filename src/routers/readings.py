"""Read endpoints: per-category windowed views and the status summary."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from src.biometrics.base import Category
from src.dependencies import Service

router = APIRouter(tags=["readings"])

_HOURLY = {Category.HEART_RATE, Category.STRESS}


@router.get("/readings/{category}")
async def get_readings(
    category: str,
    service: Service,
    hours: float | None = Query(None, gt=0, description="Window for heart_rate and stress"),
    days: float | None = Query(None, gt=0, description="Window for sleep and steps"),
) -> dict:
    try:
        resolved = Category(category)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown category: {category}") from exc

    window = hours if resolved in _HOURLY else days
    return await service.get_readings(resolved, window)


@router.get("/status")
async def get_status(service: Service) -> dict:
    return await service.get_status()
