"""FastAPI entry point for the Vectorize MCP adapter.

Endpoints:
- GET/POST       /mcp            — Buffered JSON-RPC (HTTP status mirrors errors)
- GET/POST/PATCH /mcp-streamable — JSON-RPC with tools/executeFunction, always 200
- GET            /sse            — JSON-RPC from the query string, one SSE event
- GET/POST       /proxy          — Raw passthrough to the retrieval API
- GET            /health         — Which upstream variables are configured

Every route also answers OPTIONS with the CORS preflight headers.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from vectorize_mcp.config import (
    CREDENTIAL_VARS,
    LOG_LEVEL,
    MCP_MAX_BODY_BYTES,
    MCP_PORT,
    MCP_RATE_LIMIT,
    MCP_SERVER_NAME,
    MCP_SERVER_VERSION,
    config_status,
    load_credentials,
)
from vectorize_mcp.dispatcher import RpcDispatcher, parse_num_results
from vectorize_mcp.errors import ConfigurationError, RpcError, RpcErrorCode, UpstreamError
from vectorize_mcp.logging_config import generate_request_id, request_id_var, setup_logging
from vectorize_mcp.models import ErrorInfo, HealthResponse, RpcRequest, RpcResponse
from vectorize_mcp.transports import (
    BUFFERED,
    CONNECTION_HEARTBEAT,
    HEALTH_ALLOW_METHODS,
    PROXY_ALLOW_METHODS,
    SSE,
    STREAMABLE,
    TransportProfile,
    cors_headers,
)
from vectorize_mcp.upstream import VectorizeClient

logger = logging.getLogger(__name__)


def init_upstream(app: FastAPI, environ: Mapping[str, str] | None = None) -> None:
    """Load credentials once and attach the retrieval client to ``app.state``.

    Missing configuration does not stop the service: the health route still
    reports it and the retrieval methods answer with an internal error
    without calling upstream.
    """
    app.state.retriever = VectorizeClient()
    try:
        app.state.credentials = load_credentials(environ)
        app.state.config_error = None
    except ConfigurationError as e:
        app.state.credentials = None
        app.state.config_error = e


def log_upstream_state(app: FastAPI) -> None:
    """Report the configuration loaded by :func:`init_upstream`, without values."""
    logger.info("Environment variables present: %s", config_status())
    if app.state.config_error is not None:
        logger.warning("Upstream retrieval disabled: %s", app.state.config_error)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging(level=LOG_LEVEL)
    log_upstream_state(app)
    logger.info("Vectorize MCP adapter started")
    yield
    logger.info("Vectorize MCP adapter stopped")


app = FastAPI(
    title="Vectorize MCP Adapter",
    version=MCP_SERVER_VERSION,
    lifespan=lifespan,
)
init_upstream(app)

# -- Rate limiting ------------------------------------------------------------

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded"},
        headers={"Access-Control-Allow-Origin": "*"},
    )


_ROUTE_ALLOW_METHODS = {
    "/mcp": BUFFERED.allow_methods,
    "/mcp-streamable": STREAMABLE.allow_methods,
    "/sse": SSE.allow_methods,
    "/proxy": PROXY_ALLOW_METHODS,
    "/health": HEALTH_ALLOW_METHODS,
}


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code != 405:
        return await http_exception_handler(request, exc)
    allowed = _ROUTE_ALLOW_METHODS.get(request.url.path, "OPTIONS")
    return JSONResponse(
        status_code=405,
        content={
            "error": "Method not allowed",
            "message": f"This endpoint only supports {allowed} requests.",
        },
        headers=cors_headers(allowed),
    )


# -- Body size limit ----------------------------------------------------------


@app.middleware("http")
async def body_size_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with bodies exceeding the size limit."""
    content_length = request.headers.get("content-length")
    if content_length is not None and content_length.isdigit() and int(content_length) > MCP_MAX_BODY_BYTES:
        return JSONResponse(
            status_code=413,
            content={"detail": "Request body too large"},
            headers={"Access-Control-Allow-Origin": "*"},
        )
    return await call_next(request)


# -- Request ID middleware ----------------------------------------------------


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Attach a unique request ID for trace correlation."""
    request_id = request.headers.get("x-request-id") or generate_request_id()
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["x-request-id"] = request_id
    return response


# -- JSON-RPC plumbing --------------------------------------------------------


def _dispatcher(request: Request, profile: TransportProfile) -> RpcDispatcher:
    state = request.app.state
    return RpcDispatcher(profile, state.retriever, state.credentials, state.config_error)


def _echo_id(payload: Mapping[str, Any]) -> Any:
    request_id = payload.get("id")
    if request_id is None or isinstance(request_id, bool):
        return None
    return request_id if isinstance(request_id, (str, int, float)) else None


def _error_response(request_id: Any, code: RpcErrorCode, data: Any = None) -> RpcResponse:
    return RpcResponse.failure(request_id, ErrorInfo.from_exception(RpcError(code, data)))


def build_rpc_request(payload: Any) -> RpcRequest | RpcResponse:
    """Validate a decoded JSON-RPC envelope.

    Returns the request, or the ``Invalid Request`` response to send back.
    """
    if not isinstance(payload, dict):
        return _error_response(None, RpcErrorCode.INVALID_REQUEST, "Request must be a JSON object")
    try:
        return RpcRequest.model_validate(payload)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return _error_response(_echo_id(payload), RpcErrorCode.INVALID_REQUEST, details)


async def _handle_body(request: Request, profile: TransportProfile) -> Response:
    body = await request.body()
    try:
        payload = json.loads(body)
    except ValueError as e:
        logger.warning("Parse error on %s: %s", request.url.path, e)
        return profile.render(_error_response(None, RpcErrorCode.PARSE_ERROR, str(e)))

    rpc_request = build_rpc_request(payload)
    if isinstance(rpc_request, RpcResponse):
        return profile.render(rpc_request)
    response = await _dispatcher(request, profile).dispatch(rpc_request)
    return profile.render(response)


def _preflight(allow_methods: str, extra: Mapping[str, str] | None = None) -> Response:
    return Response(status_code=200, content="", headers={**cors_headers(allow_methods), **(extra or {})})


# -- Buffered JSON-RPC --------------------------------------------------------


@app.options("/mcp")
async def mcp_preflight() -> Response:
    return _preflight(BUFFERED.allow_methods)


@app.get("/mcp")
async def mcp_info() -> JSONResponse:
    return JSONResponse(
        content={
            "status": "ok",
            "message": f"{MCP_SERVER_NAME} MCP Server is running. Please use POST for JSON-RPC requests.",
        },
        headers=BUFFERED.headers(),
    )


@app.post("/mcp")
@limiter.limit(MCP_RATE_LIMIT)
async def mcp_rpc(request: Request) -> Response:
    return await _handle_body(request, BUFFERED)


# -- Streamable JSON-RPC ------------------------------------------------------


@app.options("/mcp-streamable")
async def streamable_preflight() -> Response:
    return _preflight(STREAMABLE.allow_methods, STREAMABLE.extra_headers)


@app.get("/mcp-streamable")
async def streamable_info() -> JSONResponse:
    return JSONResponse(
        content={
            "status": "ok",
            "message": f"{MCP_SERVER_NAME} MCP Server is running",
            "serverInfo": {
                "name": MCP_SERVER_NAME,
                "version": MCP_SERVER_VERSION,
                "transport": STREAMABLE.transport,
            },
            "supportedMethods": list(STREAMABLE.methods),
            "usage": "POST JSON-RPC 2.0 formatted requests to this endpoint",
        },
        headers=STREAMABLE.headers(),
    )


@app.api_route("/mcp-streamable", methods=["POST", "PATCH"])
@limiter.limit(MCP_RATE_LIMIT)
async def streamable_rpc(request: Request) -> Response:
    return await _handle_body(request, STREAMABLE)


# -- Server-sent events -------------------------------------------------------


def sse_payload(query: Mapping[str, str]) -> dict[str, Any]:
    """Build a JSON-RPC envelope from query-string parameters.

    ``params`` may carry a JSON object; otherwise every parameter that is not
    part of the envelope is passed as a param.

    Raises:
        ValueError: If ``params`` is present but not valid JSON.
    """
    envelope_keys = {"jsonrpc", "method", "id", "params"}
    if "params" in query:
        params: Any = json.loads(query["params"])
    else:
        params = {k: v for k, v in query.items() if k not in envelope_keys}

    payload: dict[str, Any] = {
        "jsonrpc": query.get("jsonrpc", "2.0"),
        "method": query.get("method") or "",
        "params": params,
        "id": query.get("id"),
    }
    if not payload["method"] and SSE.empty_method_is_heartbeat:
        payload["method"] = CONNECTION_HEARTBEAT
    return payload


@app.options("/sse")
async def sse_preflight() -> Response:
    return _preflight(SSE.allow_methods)


@app.get("/sse")
@limiter.limit(MCP_RATE_LIMIT)
async def sse(request: Request) -> Response:
    query = request.query_params
    try:
        payload = sse_payload(query)
    except ValueError as e:
        logger.warning("Parse error in SSE params: %s", e)
        return SSE.render(_error_response(query.get("id"), RpcErrorCode.PARSE_ERROR, str(e)))

    rpc_request = build_rpc_request(payload)
    if isinstance(rpc_request, RpcResponse):
        return SSE.render(rpc_request)
    response = await _dispatcher(request, SSE).dispatch(rpc_request)
    return SSE.render(response)


# -- Raw proxy ----------------------------------------------------------------


def _proxy_error(status_code: int, error: str, details: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=cors_headers(PROXY_ALLOW_METHODS))


async def _proxy(request: Request, payload: Mapping[str, Any]) -> JSONResponse:
    question = payload.get("question") or payload.get("query")
    if not isinstance(question, str) or not question.strip():
        return _proxy_error(400, "Missing required parameter: question")
    try:
        num_results = parse_num_results(payload.get("numResults"))
    except RpcError as e:
        return _proxy_error(400, str(e.data))

    state = request.app.state
    if state.credentials is None:
        return _proxy_error(500, "Upstream is not configured", str(state.config_error))

    try:
        data = await state.retriever.query_raw(question, num_results, state.credentials)
    except UpstreamError as e:
        logger.error("Proxy upstream error: %s (status=%s)", e.message, e.status)
        return _proxy_error(e.status or 502, "Upstream request failed", e.to_data())
    return JSONResponse(content=data, headers=cors_headers(PROXY_ALLOW_METHODS))


@app.options("/proxy")
async def proxy_preflight() -> Response:
    return _preflight(PROXY_ALLOW_METHODS)


@app.get("/proxy")
@limiter.limit(MCP_RATE_LIMIT)
async def proxy_get(request: Request) -> JSONResponse:
    return await _proxy(request, dict(request.query_params))


@app.post("/proxy")
@limiter.limit(MCP_RATE_LIMIT)
async def proxy_post(request: Request) -> JSONResponse:
    try:
        payload = json.loads(await request.body())
    except ValueError as e:
        return _proxy_error(400, "Invalid JSON body", str(e))
    if not isinstance(payload, dict):
        return _proxy_error(400, "Request body must be a JSON object")
    return await _proxy(request, payload)


# -- Health -------------------------------------------------------------------


@app.options("/health")
async def health_preflight() -> Response:
    return _preflight(HEALTH_ALLOW_METHODS)


@app.get("/health", response_model=HealthResponse)
async def health(request: Request) -> JSONResponse:
    variables = config_status()
    body = HealthResponse(
        status="ok",
        service="Vectorize MCP Server",
        environment="configured" if all(variables[name] for name in CREDENTIAL_VARS) else "partially configured",
        variables=variables,
        supportedMethods=[m.strip() for m in HEALTH_ALLOW_METHODS.split(",")],
        requestMethod=request.method,
        timestamp=datetime.now(UTC).isoformat(),
    )
    return JSONResponse(content=body.model_dump(), headers=cors_headers(HEALTH_ALLOW_METHODS))


def main() -> None:
    """Run the adapter with uvicorn."""
    import uvicorn

    uvicorn.run("vectorize_mcp.app:app", host="0.0.0.0", port=MCP_PORT)


if __name__ == "__main__":
    main()
