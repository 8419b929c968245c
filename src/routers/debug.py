"""Diagnostics: raw Drive folder listing."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from src.dependencies import ApiKey, Service
from src.services.drive import DriveError

router = APIRouter(prefix="/debug", tags=["debug"], dependencies=[ApiKey])


@router.get("/files")
async def list_files(
    service: Service,
    folder: str | None = Query(None, description="Drive folder id (defaults to the heart-rate folder)"),
) -> dict:
    """List every file in a folder, CSV or not."""
    try:
        return await service.list_folder(folder)
    except DriveError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
