"""Shared test fixtures for the vectorize-mcp test suite."""

from __future__ import annotations

from typing import Any

import pytest

from vectorize_mcp.config import UpstreamCredentials
from vectorize_mcp.errors import UpstreamError


class FakeRetriever:
    """Call-counting stand-in for the upstream retrieval capability."""

    def __init__(self, documents: list[Any] | None = None, error: UpstreamError | None = None) -> None:
        self.documents = documents if documents is not None else []
        self.error = error
        self.calls: list[tuple[str, int, UpstreamCredentials]] = []

    async def __call__(self, query: str, num_results: int, credentials: UpstreamCredentials) -> list[Any]:
        self.calls.append((query, num_results, credentials))
        if self.error is not None:
            raise self.error
        return self.documents

    async def query_raw(self, question: str, num_results: int, credentials: UpstreamCredentials) -> Any:
        self.calls.append((question, num_results, credentials))
        if self.error is not None:
            raise self.error
        return {"question": question, "documents": self.documents}


@pytest.fixture
def credentials() -> UpstreamCredentials:
    return UpstreamCredentials(
        endpoint_template="",
        org_id="ORG1",
        pipeline_id="PIPE1",
        token="test-token",
    )


@pytest.fixture
def retriever() -> FakeRetriever:
    return FakeRetriever(documents=[{"content": "A", "similarity": 0.9}])


@pytest.fixture
def make_retriever():
    """Factory for retrievers with specific documents or a failure."""
    return FakeRetriever
