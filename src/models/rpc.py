"""JSON-RPC 2.0 envelopes for the tool-call endpoint."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

# Standard JSON-RPC error codes
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
INVALID_REQUEST = -32600


class RpcRequest(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: str | int | None = None
    method: str
    params: dict[str, Any] | None = None


class RpcError(BaseModel):
    code: int
    message: str


class RpcResponse(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: str | int | None = None
    result: Any | None = None
    error: RpcError | None = None

    @classmethod
    def ok(cls, request_id: str | int | None, result: Any) -> RpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def fail(cls, request_id: str | int | None, code: int, message: str) -> RpcResponse:
        return cls(id=request_id, error=RpcError(code=code, message=message))

    def to_wire(self) -> dict[str, Any]:
        body = self.model_dump(exclude={"result", "error"})
        if self.error is not None:
            body["error"] = self.error.model_dump()
        else:
            body["result"] = self.result
        return body
