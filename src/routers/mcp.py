"""JSON-RPC tool endpoint and its server-sent-events discovery stream."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from src.biometrics.service import BiometricsService
from src.biometrics.tools import (
    PROTOCOL_VERSION,
    SERVER_NAME,
    TOOLS,
    InvalidToolArguments,
    UnknownToolError,
    call_tool,
    text_content,
)
from src.dependencies import AppSettings, Service
from src.models.rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    RpcRequest,
    RpcResponse,
)

router = APIRouter(tags=["mcp"])
logger = logging.getLogger("biometrics.routers.mcp")


async def dispatch(service: BiometricsService, rpc: RpcRequest, version: str) -> RpcResponse:
    """Handle one JSON-RPC request; every failure becomes a structured error."""
    try:
        if rpc.method == "initialize":
            return RpcResponse.ok(rpc.id, {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": SERVER_NAME, "version": version},
            })
        if rpc.method == "tools/list":
            return RpcResponse.ok(rpc.id, {"tools": TOOLS})
        if rpc.method == "tools/call":
            params = rpc.params or {}
            name = params.get("name")
            arguments = params.get("arguments") or {}
            if not isinstance(name, str) or not isinstance(arguments, dict):
                return RpcResponse.fail(rpc.id, INVALID_PARAMS, "tools/call needs a tool name and an arguments object")
            result = await call_tool(service, name, arguments)
            return RpcResponse.ok(rpc.id, text_content(result))
        return RpcResponse.fail(rpc.id, METHOD_NOT_FOUND, f"Method not found: {rpc.method}")
    except (UnknownToolError, InvalidToolArguments) as exc:
        return RpcResponse.fail(rpc.id, INVALID_PARAMS, str(exc))
    except Exception as exc:
        logger.error("RPC %s failed: %s", rpc.method, exc)
        return RpcResponse.fail(rpc.id, INTERNAL_ERROR, str(exc))


@router.post("/mcp")
async def mcp(request: Request, service: Service, settings: AppSettings) -> dict[str, Any]:
    try:
        rpc = RpcRequest.model_validate(await request.json())
    except ValueError as exc:
        # Covers malformed JSON as well as pydantic ValidationError
        message = "Invalid request" if isinstance(exc, ValidationError) else "Parse error"
        return RpcResponse.fail(None, INVALID_REQUEST, message).to_wire()

    response = await dispatch(service, rpc, settings.app_version)
    return response.to_wire()


@router.get("/sse")
async def sse(request: Request) -> StreamingResponse:
    """Announce the tool endpoint as a single ``endpoint`` event."""
    origin = str(request.base_url).rstrip("/")

    async def events() -> AsyncIterator[str]:
        yield f"event: endpoint\ndata: {origin}/mcp\n\n"

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
