"""Normalization of upstream documents into ``RetrievedDocument``.

Upstream pipelines do not agree on field names, so each output field is
taken from the first truthy candidate in a fixed order.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from vectorize_mcp.models import RetrievedDocument

TEXT_FIELDS: tuple[str, ...] = ("text", "content", "pageContent")
SCORE_FIELDS: tuple[str, ...] = ("score", "similarity")
METADATA_FIELDS: tuple[str, ...] = ("metadata",)


def _first(raw: Mapping[str, Any], fields: tuple[str, ...]) -> Any:
    for name in fields:
        value = raw.get(name)
        if value:
            return value
    return None


def _as_score(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        score = float(value)
    except OverflowError:
        return 0.0
    return score if math.isfinite(score) else 0.0


def normalize_document(raw: Any) -> RetrievedDocument:
    """Coerce one upstream document. Never raises."""
    if not isinstance(raw, Mapping):
        return RetrievedDocument()

    text = _first(raw, TEXT_FIELDS)
    metadata = _first(raw, METADATA_FIELDS)
    return RetrievedDocument(
        text=text if isinstance(text, str) else ("" if text is None else str(text)),
        metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        score=_as_score(_first(raw, SCORE_FIELDS)),
    )


def normalize_documents(raw_documents: Iterable[Any] | None) -> list[RetrievedDocument]:
    if not raw_documents:
        return []
    return [normalize_document(doc) for doc in raw_documents]
