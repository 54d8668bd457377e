"""Per-transport behavior: which methods a route enables and how it answers.

The dispatcher is shared by every route; the differences between routes
live here as data on a :class:`TransportProfile`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from fastapi.responses import JSONResponse, Response

from vectorize_mcp.errors import RpcErrorCode
from vectorize_mcp.models import RpcResponse

# -- Method names -------------------------------------------------------------
RPC_DISCOVER = "rpc.discover"
TOOLS_LIST = "tools/list"
PROMPTS_LIST = "prompts/list"
RETRIEVAL_QUERY = "retrieval/query"
TOOLS_EXECUTE_FUNCTION = "tools/executeFunction"
CONNECTION_HANDSHAKE = "connection/handshake"
CONNECTION_INITIALIZE = "connection/initialize"
INITIALIZE = "initialize"
CONNECTION_HEARTBEAT = "connection/heartbeat"

ALL_METHODS: tuple[str, ...] = (
    RPC_DISCOVER,
    TOOLS_LIST,
    PROMPTS_LIST,
    RETRIEVAL_QUERY,
    TOOLS_EXECUTE_FUNCTION,
    CONNECTION_HANDSHAKE,
    CONNECTION_INITIALIZE,
    INITIALIZE,
    CONNECTION_HEARTBEAT,
)

# -- Tool descriptor shapes ---------------------------------------------------
TOOL_SHAPE_CURRENT = "current"  # knowledge_retrieval + inputSchema
TOOL_SHAPE_LEGACY = "legacy"  # retrieval + functions[query]

CORS_ALLOW_HEADERS = "Content-Type, Authorization"
NO_CACHE = "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0"


@dataclass(frozen=True)
class TransportProfile:
    name: str
    transport: str
    methods: tuple[str, ...]
    tool_shape: str
    allow_methods: str
    advertise_retrieval_capability: bool = False
    # JSON-RPC error code -> HTTP status; unlisted codes answer 200.
    error_status: Mapping[int, int] = field(default_factory=dict)
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    empty_method_is_heartbeat: bool = False

    def headers(self) -> dict[str, str]:
        return {**cors_headers(self.allow_methods), **self.extra_headers}

    def status_for(self, response: RpcResponse) -> int:
        if response.error is None:
            return 200
        return self.error_status.get(response.error.code, 200)

    def render(self, response: RpcResponse) -> Response:
        """Encode a dispatcher response as this transport's HTTP response."""
        if self.transport == "sse":
            return Response(
                content=encode_event(response.to_dict()),
                status_code=self.status_for(response),
                media_type="text/event-stream",
                headers=self.headers(),
            )
        return JSONResponse(
            content=response.to_dict(),
            status_code=self.status_for(response),
            headers=self.headers(),
        )


def cors_headers(allow_methods: str) -> dict[str, str]:
    """Fixed CORS policy: any origin, per-route method list."""
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": allow_methods,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }


def encode_event(payload: Any) -> str:
    """Frame one payload as a single server-sent event."""
    return f"data: {json.dumps(payload)}\n\n"


BUFFERED = TransportProfile(
    name="mcp",
    transport="http",
    methods=tuple(m for m in ALL_METHODS if m != TOOLS_EXECUTE_FUNCTION),
    tool_shape=TOOL_SHAPE_LEGACY,
    allow_methods="GET, POST, OPTIONS",
    advertise_retrieval_capability=True,
    error_status={
        RpcErrorCode.PARSE_ERROR: 400,
        RpcErrorCode.INVALID_REQUEST: 400,
        RpcErrorCode.INVALID_PARAMS: 400,
        RpcErrorCode.METHOD_NOT_FOUND: 404,
        RpcErrorCode.INTERNAL_ERROR: 500,
    },
    extra_headers={"X-Accel-Buffering": "no"},
)

STREAMABLE = TransportProfile(
    name="mcp-streamable",
    transport="streamable-http",
    methods=ALL_METHODS,
    tool_shape=TOOL_SHAPE_CURRENT,
    allow_methods="GET, POST, OPTIONS, PATCH",
    extra_headers={"Cache-Control": NO_CACHE},
)

SSE = TransportProfile(
    name="sse",
    transport="sse",
    methods=(CONNECTION_HEARTBEAT, PROMPTS_LIST, TOOLS_LIST, RETRIEVAL_QUERY),
    tool_shape=TOOL_SHAPE_LEGACY,
    allow_methods="GET, OPTIONS",
    extra_headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    empty_method_is_heartbeat=True,
)

PROXY_ALLOW_METHODS = "GET, POST, OPTIONS"
HEALTH_ALLOW_METHODS = "GET, OPTIONS"
