"""Unit tests for the httpx-backed Vectorize client."""

from __future__ import annotations

import json

import httpx
import pytest

from vectorize_mcp.errors import UpstreamError
from vectorize_mcp.upstream import VectorizeClient


def _client(handler) -> VectorizeClient:
    return VectorizeClient(transport=httpx.MockTransport(handler))


class TestVectorizeClient:
    async def test_posts_question_with_bearer_token(self, credentials):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"documents": [{"text": "hit"}]})

        docs = await _client(handler)("deploy a workspace", 3, credentials)

        assert docs == [{"text": "hit"}]
        (request,) = seen
        assert request.method == "POST"
        assert str(request.url) == "https://api.vectorize.io/v1/org/ORG1/pipelines/PIPE1/retrieval"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert json.loads(request.content) == {"question": "deploy a workspace", "numResults": 3}

    async def test_missing_documents_is_empty(self, credentials):
        docs = await _client(lambda r: httpx.Response(200, json={}))("q", 5, credentials)
        assert docs == []

    async def test_non_2xx_raises_with_status_and_payload(self, credentials):
        client = _client(lambda r: httpx.Response(503, json={"error": "unavailable"}))
        with pytest.raises(UpstreamError) as exc_info:
            await client("q", 5, credentials)
        assert exc_info.value.status == 503
        assert exc_info.value.payload == {"error": "unavailable"}

    async def test_non_json_error_body_is_kept_as_text(self, credentials):
        client = _client(lambda r: httpx.Response(401, text="unauthorized"))
        with pytest.raises(UpstreamError) as exc_info:
            await client("q", 5, credentials)
        assert exc_info.value.status == 401
        assert exc_info.value.payload == "unauthorized"

    async def test_network_error_raises_without_status(self, credentials):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError) as exc_info:
            await _client(handler)("q", 5, credentials)
        assert exc_info.value.status is None

    async def test_timeout_raises(self, credentials):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamError, match="timed out"):
            await _client(handler)("q", 5, credentials)

    async def test_single_attempt_on_failure(self, credentials):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            return httpx.Response(502)

        with pytest.raises(UpstreamError):
            await _client(handler)("q", 5, credentials)
        assert len(attempts) == 1

    async def test_documents_not_a_list(self, credentials):
        client = _client(lambda r: httpx.Response(200, json={"documents": "nope"}))
        with pytest.raises(UpstreamError):
            await client("q", 5, credentials)

    async def test_query_raw_returns_whole_body(self, credentials):
        body = {"documents": [], "question": "q", "average_relevancy": 0.4}
        data = await _client(lambda r: httpx.Response(200, json=body)).query_raw("q", 5, credentials)
        assert data == body
