"""Upstream retrieval URL resolution."""

from __future__ import annotations

import os

VECTORIZE_API_BASE: str = os.getenv("VECTORIZE_API_BASE", "https://api.vectorize.io").rstrip("/")


def resolve_endpoint(template: str, org_id: str, pipeline_id: str) -> str:
    """Return the retrieval URL for a pipeline.

    An operator-supplied *template* wins when it already names both the
    organization and the pipeline (e.g. a private deployment). Otherwise the
    public API URL is built from the identifiers.
    """
    if template and org_id in template and pipeline_id in template:
        return template
    return f"{VECTORIZE_API_BASE}/v1/org/{org_id}/pipelines/{pipeline_id}/retrieval"
