"""HTTP client for the upstream Vectorize retrieval API.

One POST per call, no retries: a failure surfaces immediately as
:class:`UpstreamError` and the caller decides how to report it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, Protocol

import httpx

from vectorize_mcp.config import VECTORIZE_TIMEOUT_SECONDS, UpstreamCredentials
from vectorize_mcp.errors import UpstreamError

logger = logging.getLogger(__name__)


class RetrievalCapability(Protocol):
    def __call__(
        self, query: str, num_results: int, credentials: UpstreamCredentials
    ) -> Awaitable[list[Any]]: ...


def _get_headers(credentials: UpstreamCredentials) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {credentials.token}",
    }


def _decode_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


class VectorizeClient:
    """Retrieval capability backed by ``httpx``.

    ``transport`` is passed through to :class:`httpx.AsyncClient`; tests use
    it to plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        timeout: float = VECTORIZE_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def query_raw(self, question: str, num_results: int, credentials: UpstreamCredentials) -> Any:
        """POST the question upstream and return the decoded response body."""
        url = credentials.endpoint
        logger.info("Querying Vectorize at %s (numResults=%d): %.50s", url, num_results, question)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    url,
                    headers=_get_headers(credentials),
                    json={"question": question, "numResults": num_results},
                )
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Upstream request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstream request failed: {e}") from e

        if not resp.is_success:
            payload = _decode_body(resp)
            logger.warning("Vectorize returned HTTP %d", resp.status_code)
            raise UpstreamError(
                f"Upstream returned HTTP {resp.status_code}",
                status=resp.status_code,
                payload=payload,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(
                "Upstream returned a non-JSON body", status=resp.status_code, payload=resp.text
            ) from e

    async def __call__(self, query: str, num_results: int, credentials: UpstreamCredentials) -> list[Any]:
        data = await self.query_raw(query, num_results, credentials)
        documents = data.get("documents") if isinstance(data, dict) else None
        if documents is None:
            documents = []
        if not isinstance(documents, list):
            raise UpstreamError("Upstream 'documents' is not a list", payload=data)
        logger.info("Received %d documents from Vectorize", len(documents))
        return documents
