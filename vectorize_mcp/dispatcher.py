"""JSON-RPC method dispatch for the MCP adapter.

Every method is answered from its name and params alone; nothing is kept
between calls. ``retrieval/query`` and ``tools/executeFunction`` are separate
public names that share one retrieval flow.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from vectorize_mcp.config import (
    DEFAULT_NUM_RESULTS,
    MCP_PROTOCOL_VERSION,
    MCP_SERVER_NAME,
    MCP_SERVER_VERSION,
    UpstreamCredentials,
)
from vectorize_mcp.errors import ConfigurationError, RpcError, RpcErrorCode, UpstreamError
from vectorize_mcp.models import ErrorInfo, RpcRequest, RpcResponse
from vectorize_mcp.normalize import normalize_documents
from vectorize_mcp.transports import (
    CONNECTION_HANDSHAKE,
    CONNECTION_HEARTBEAT,
    CONNECTION_INITIALIZE,
    INITIALIZE,
    PROMPTS_LIST,
    RETRIEVAL_QUERY,
    RPC_DISCOVER,
    TOOL_SHAPE_CURRENT,
    TOOLS_EXECUTE_FUNCTION,
    TOOLS_LIST,
    TransportProfile,
)
from vectorize_mcp.upstream import RetrievalCapability

logger = logging.getLogger(__name__)

KNOWLEDGE_RETRIEVAL_TOOL = "knowledge_retrieval"

Handler = Callable[[Mapping[str, Any]], Awaitable[Any]]


def _query_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The search query"},
            "numResults": {
                "type": "integer",
                "description": "Number of results to return",
                "default": DEFAULT_NUM_RESULTS,
            },
        },
        "required": ["query"],
    }


def tool_descriptors(tool_shape: str) -> list[dict[str, Any]]:
    """Static tool listing in the current or legacy descriptor shape."""
    if tool_shape == TOOL_SHAPE_CURRENT:
        return [
            {
                "name": KNOWLEDGE_RETRIEVAL_TOOL,
                "description": "Search the knowledge base for information",
                "inputSchema": _query_schema(),
            }
        ]
    return [
        {
            "name": "retrieval",
            "description": f"Retrieves information from the {MCP_SERVER_NAME}",
            "functions": [
                {
                    "name": "query",
                    "description": f"Query the {MCP_SERVER_NAME}",
                    "parameters": _query_schema(),
                }
            ],
        }
    ]


def _server_info() -> dict[str, str]:
    return {"name": MCP_SERVER_NAME, "version": MCP_SERVER_VERSION}


def parse_num_results(value: Any) -> int:
    """Coerce ``numResults``; absent, null and zero mean the default.

    Whole-number floats are accepted; fractional and non-finite values are
    invalid params, never truncated.
    """
    if value is None or value == "":
        return DEFAULT_NUM_RESULTS
    if isinstance(value, bool):
        raise RpcError(RpcErrorCode.INVALID_PARAMS, "numResults must be a positive integer")
    if isinstance(value, float) and not (math.isfinite(value) and value.is_integer()):
        raise RpcError(RpcErrorCode.INVALID_PARAMS, "numResults must be a positive integer")
    try:
        num = int(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise RpcError(RpcErrorCode.INVALID_PARAMS, "numResults must be a positive integer") from e
    if num == 0:
        return DEFAULT_NUM_RESULTS
    if num < 0:
        raise RpcError(RpcErrorCode.INVALID_PARAMS, "numResults must be a positive integer")
    return num


class RpcDispatcher:
    """Maps an :class:`RpcRequest` to an :class:`RpcResponse`.

    ``dispatch`` never raises: handler failures, upstream failures and
    unexpected exceptions all come back as an error response carrying the
    request id.

    Args:
        profile: The transport whose enabled methods and descriptor shapes
            apply.
        retrieve: The upstream retrieval capability.
        credentials: Upstream credentials, or ``None`` when configuration
            failed to load.
        config_error: Why ``credentials`` is ``None``; reported to callers of
            the retrieval methods.
    """

    def __init__(
        self,
        profile: TransportProfile,
        retrieve: RetrievalCapability,
        credentials: UpstreamCredentials | None,
        config_error: ConfigurationError | None = None,
    ) -> None:
        self.profile = profile
        self._retrieve = retrieve
        self._credentials = credentials
        self._config_error = config_error
        self._handlers: dict[str, Handler] = {
            RPC_DISCOVER: self._discover,
            CONNECTION_HANDSHAKE: self._handshake,
            CONNECTION_INITIALIZE: self._handshake,
            INITIALIZE: self._initialize,
            CONNECTION_HEARTBEAT: self._heartbeat,
            TOOLS_LIST: self._tools_list,
            PROMPTS_LIST: self._prompts_list,
            TOOLS_EXECUTE_FUNCTION: self._execute_function,
            RETRIEVAL_QUERY: self._retrieval_query,
        }

    @property
    def supported_methods(self) -> list[str]:
        return list(self.profile.methods)

    async def dispatch(self, request: RpcRequest) -> RpcResponse:
        handler = self._handlers.get(request.method) if request.method in self.profile.methods else None
        if handler is None:
            logger.warning("Unknown method requested: %s", request.method)
            error = RpcError(
                RpcErrorCode.METHOD_NOT_FOUND,
                {"method": request.method, "supportedMethods": self.supported_methods},
            )
            return RpcResponse.failure(request.id, ErrorInfo.from_exception(error))

        logger.info("Dispatching %s (id=%s) on %s", request.method, request.id, self.profile.name)
        try:
            result = await handler(request.params)
        except RpcError as e:
            return RpcResponse.failure(request.id, ErrorInfo.from_exception(e))
        except Exception as e:
            logger.exception("Unhandled error in %s", request.method)
            error = RpcError(RpcErrorCode.INTERNAL_ERROR, {"message": str(e)})
            return RpcResponse.failure(request.id, ErrorInfo.from_exception(error))
        return RpcResponse.success(request.id, result)

    # -- Local methods --------------------------------------------------------

    async def _discover(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {
            **_server_info(),
            "transports": [self.profile.transport],
            "methods": self.supported_methods,
        }

    async def _handshake(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {"status": "connected", "serverInfo": _server_info()}

    async def _initialize(self, params: Mapping[str, Any]) -> dict[str, Any]:
        logger.debug("Client initialize params: %s", params)
        capabilities: dict[str, bool] = {"tools": True}
        if self.profile.advertise_retrieval_capability:
            capabilities["retrieval"] = True
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": capabilities,
            "serverInfo": _server_info(),
        }

    async def _heartbeat(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {"status": "connected"}

    async def _tools_list(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {"tools": tool_descriptors(self.profile.tool_shape)}

    async def _prompts_list(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {"prompts": []}

    # -- Retrieval ------------------------------------------------------------

    async def _execute_function(self, params: Mapping[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("parameters") or params.get("arguments") or {}
        if name != KNOWLEDGE_RETRIEVAL_TOOL:
            raise RpcError(RpcErrorCode.METHOD_NOT_FOUND, f"Unknown function: {name}")
        if not isinstance(arguments, Mapping):
            raise RpcError(RpcErrorCode.INVALID_PARAMS, "Function parameters must be an object")

        documents = await self._retrieve_documents(arguments)
        return {
            "content": [{"type": "text", "text": json.dumps({"documents": documents})}],
            "isError": False,
        }

    async def _retrieval_query(self, params: Mapping[str, Any]) -> dict[str, Any]:
        return {"documents": await self._retrieve_documents(params)}

    async def _retrieve_documents(self, arguments: Mapping[str, Any]) -> list[dict[str, Any]]:
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise RpcError(RpcErrorCode.INVALID_PARAMS, "Missing required parameter: query")
        num_results = parse_num_results(arguments.get("numResults"))

        if self._credentials is None:
            logger.error("Retrieval requested but upstream is not configured: %s", self._config_error)
            raise RpcError(
                RpcErrorCode.INTERNAL_ERROR,
                {"message": str(self._config_error or "Upstream is not configured")},
            )

        logger.info("Retrieving %d documents from %s", num_results, self._credentials.endpoint)
        try:
            raw = await self._retrieve(query, num_results, self._credentials)
        except UpstreamError as e:
            logger.error("Vectorize API error: %s (status=%s)", e.message, e.status)
            raise RpcError(RpcErrorCode.INTERNAL_ERROR, e.to_data()) from e

        return [doc.model_dump() for doc in normalize_documents(raw)]
