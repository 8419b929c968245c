"""Direct reading push for clients that bypass Drive sync."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from src.biometrics.base import ReadingValidationError
from src.dependencies import ApiKey, Service
from src.models.readings import PushResponse, parse_push_body

router = APIRouter(tags=["ingest"], dependencies=[ApiKey])
logger = logging.getLogger("biometrics.routers.ingest")


@router.post("/push", response_model=PushResponse, response_model_exclude_none=True)
async def push_readings(request: Request, service: Service) -> Any:
    """Store one reading (``{type, timestamp, data}``) or a batch (``{readings: [...]}``)."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON") from exc

    try:
        payloads = parse_push_body(body)
        readings = [p.to_reading() for p in payloads]
    except (ValidationError, ReadingValidationError, ValueError) as exc:
        logger.warning("Rejected push: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    stored = await service.push(readings)
    if len(payloads) == 1 and not (isinstance(body, dict) and "readings" in body):
        return {"success": True, "stored": stored, "type": payloads[0].type}
    return {"success": True, "stored": stored}
