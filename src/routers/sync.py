"""Manual sync trigger."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import ApiKey, Service
from src.models.readings import SyncResponse

router = APIRouter(tags=["sync"], dependencies=[ApiKey])
logger = logging.getLogger("biometrics.routers.sync")


@router.post("/sync", response_model=SyncResponse)
async def trigger_sync(
    service: Service,
    force: bool = Query(False, description="Re-read files even if unchanged since the last sync"),
) -> Any:
    try:
        counts = await service.sync(force=force)
    except Exception as exc:
        logger.error("Manual sync failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"success": True, "synced": counts}
