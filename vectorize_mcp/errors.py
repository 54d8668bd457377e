"""Error types shared by the dispatcher, the upstream client and config."""

from __future__ import annotations

from collections.abc import Sequence
from enum import IntEnum
from typing import Any


class RpcErrorCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


ERROR_MESSAGES: dict[RpcErrorCode, str] = {
    RpcErrorCode.PARSE_ERROR: "Parse error",
    RpcErrorCode.INVALID_REQUEST: "Invalid Request",
    RpcErrorCode.METHOD_NOT_FOUND: "Method not found",
    RpcErrorCode.INVALID_PARAMS: "Invalid params",
    RpcErrorCode.INTERNAL_ERROR: "Internal error",
}


class RpcError(Exception):
    """A JSON-RPC error raised inside a method handler.

    The dispatcher turns it into an ``ErrorInfo`` on the response; it never
    leaves the dispatch boundary.
    """

    def __init__(self, code: RpcErrorCode, data: Any = None, message: str | None = None) -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.data = data
        super().__init__(self.message)


class UpstreamError(Exception):
    """The upstream retrieval call failed.

    ``status`` is the upstream HTTP status when a response was received,
    ``payload`` its decoded body (JSON when possible, else text).
    """

    def __init__(self, message: str, *, status: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload

    def to_data(self) -> dict[str, Any]:
        return {"message": self.message, "status": self.status, "data": self.payload}


class ConfigurationError(RuntimeError):
    """Required upstream configuration is missing."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__("Missing configuration: " + ", ".join(self.missing))
