"""Pydantic schemas for JSON-RPC messages, documents and the HTTP surface."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from vectorize_mcp.errors import RpcError

RequestId = str | int | float | None

# -- JSON-RPC -----------------------------------------------------------------


class RpcRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    jsonrpc: str = "2.0"
    method: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    id: RequestId = None

    @field_validator("params", mode="before")
    @classmethod
    def _null_params(cls, value: Any) -> Any:
        return {} if value is None else value


class ErrorInfo(BaseModel):
    code: int
    message: str
    data: Any = None

    @classmethod
    def from_exception(cls, exc: RpcError) -> ErrorInfo:
        return cls(code=int(exc.code), message=exc.message, data=exc.data)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        return body


class RpcResponse(BaseModel):
    jsonrpc: str = "2.0"
    id: RequestId = None
    result: Any = None
    error: ErrorInfo | None = None

    @model_validator(mode="after")
    def _one_outcome(self) -> RpcResponse:
        if (self.result is None) == (self.error is None):
            raise ValueError("exactly one of result or error must be set")
        return self

    @classmethod
    def success(cls, request_id: RequestId, result: Any) -> RpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: RequestId, error: ErrorInfo) -> RpcResponse:
        return cls(id=request_id, error=error)

    def to_dict(self) -> dict[str, Any]:
        """Wire form: ``id`` always present, only the populated outcome key."""
        body: dict[str, Any] = {"jsonrpc": "2.0", "id": self.id}
        if self.error is not None:
            body["error"] = self.error.to_dict()
        else:
            body["result"] = self.result
        return body


# -- Retrieval ----------------------------------------------------------------


class RetrievedDocument(BaseModel):
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float = Field(0.0, allow_inf_nan=False)


# -- Health -------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    service: str
    environment: str  # "configured" or "partially configured"
    variables: dict[str, bool]
    supportedMethods: list[str]
    requestMethod: str
    timestamp: str
