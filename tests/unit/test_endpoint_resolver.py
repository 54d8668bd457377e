"""Unit tests for upstream URL resolution."""

from __future__ import annotations

from vectorize_mcp.endpoint import resolve_endpoint

PUBLIC = "https://api.vectorize.io/v1/org/ORG1/pipelines/PIPE1/retrieval"


class TestResolveEndpoint:
    def test_fully_qualified_template_is_kept(self):
        template = "https://x/org/ORG1/pipelines/PIPE1/retrieval"
        assert resolve_endpoint(template, "ORG1", "PIPE1") == template

    def test_empty_template_builds_public_url(self):
        assert resolve_endpoint("", "ORG1", "PIPE1") == PUBLIC

    def test_template_missing_pipeline_is_replaced(self):
        assert resolve_endpoint("https://x/org/ORG1/retrieval", "ORG1", "PIPE1") == PUBLIC

    def test_template_missing_org_is_replaced(self):
        assert resolve_endpoint("https://x/pipelines/PIPE1", "ORG1", "PIPE1") == PUBLIC

    def test_private_deployment_host_is_kept(self):
        template = "https://vectorize.internal/ORG1/PIPE1/search"
        assert resolve_endpoint(template, "ORG1", "PIPE1") == template
