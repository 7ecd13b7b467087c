"""Turn raw nearest-neighbour output into thresholded, ranked query results.

Retrieval runs in two stages. Chroma returns the ``n_results`` nearest
neighbours, then this module converts distances to similarities, drops
everything under the threshold and sorts. Because the threshold is applied
after the backend's cut, a small ``limit`` with a high threshold can return
fewer results than qualifying documents exist in the whole collection.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Sequence

from ..errors import MalformedInputError
from ..ingestion.metadata import parse_timestamp, split_tags
from ..ingestion.models import DateRange, QueryOptions, QueryResult

LOGGER = logging.getLogger(__name__)


def similarity_from_distance(distance: float) -> float:
    """``1 - distance``; only meaningful for distances normalized to [0, 1] (cosine space)."""
    return 1.0 - float(distance)


def build_where_clause(options: QueryOptions) -> Dict[str, Any] | None:
    """Equality predicates Chroma can evaluate natively."""
    conditions: List[Dict[str, Any]] = []
    if options.category:
        conditions.append({"category": options.category})
    if options.source:
        conditions.append({"source": options.source})

    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return {"$and": conditions}


def has_client_filters(options: QueryOptions) -> bool:
    date_range = options.date_range
    return bool(options.tags) or bool(date_range and (date_range.start or date_range.end))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def matches_client_filters(
    metadata: Mapping[str, Any],
    *,
    tags: Sequence[str] | None = None,
    date_range: DateRange | None = None,
) -> bool:
    """Tag any-of and inclusive ``lastModified`` range, evaluated locally."""

    if tags:
        stored = set(split_tags(metadata.get("tags")))
        if not stored.intersection(tags):
            return False

    if date_range and (date_range.start or date_range.end):
        modified = parse_timestamp(str(metadata.get("lastModified") or ""))
        if modified is None:
            return False
        if date_range.start and modified < _as_utc(date_range.start):
            return False
        if date_range.end and modified > _as_utc(date_range.end):
            return False

    return True


def _check_parallel(name: str, values: Sequence[Any] | None, expected: int) -> Sequence[Any]:
    if values is None:
        return [None] * expected
    if len(values) != expected:
        raise MalformedInputError(
            f"Expected {expected} {name} to match ids, got {len(values)}"
        )
    return values


def rank_results(
    ids: Sequence[str],
    documents: Sequence[str | None] | None,
    metadatas: Sequence[Mapping[str, Any] | None] | None,
    distances: Sequence[float] | None,
    *,
    threshold: float = 0.7,
    limit: int = 5,
    tags: Sequence[str] | None = None,
    date_range: DateRange | None = None,
) -> List[QueryResult]:
    """Convert, threshold, filter, stable-sort and trim parallel neighbour arrays."""

    if limit <= 0 or not ids:
        return []

    documents = _check_parallel("documents", documents, len(ids))
    metadatas = _check_parallel("metadatas", metadatas, len(ids))
    if distances is None:
        raise MalformedInputError("Query response carries no distances")
    distances = _check_parallel("distances", distances, len(ids))

    results: List[QueryResult] = []
    for doc_id, content, metadata, distance in zip(ids, documents, metadatas, distances):
        if distance is None:
            continue
        score = similarity_from_distance(distance)
        if score < threshold:
            continue
        metadata = dict(metadata or {})
        if not matches_client_filters(metadata, tags=tags, date_range=date_range):
            continue
        results.append(QueryResult(id=doc_id, content=content or "", metadata=metadata, score=score))

    # sorted() is stable, so equal scores keep the backend's order
    results = sorted(results, key=lambda result: result.score, reverse=True)
    LOGGER.debug(
        "Kept %d of %d neighbours at threshold %.2f", len(results), len(ids), threshold
    )
    return results[:limit]


def first_query_batch(raw: Mapping[str, Any]) -> tuple[list, list | None, list | None, list | None]:
    """Unwrap the per-query nesting of a Chroma ``query`` response for a single query."""

    def _first(key: str) -> list | None:
        value = raw.get(key)
        if not value:
            return None
        return list(value[0]) if value[0] is not None else None

    ids = _first("ids") or []
    return ids, _first("documents"), _first("metadatas"), _first("distances")


__all__ = [
    "build_where_clause",
    "first_query_batch",
    "has_client_filters",
    "matches_client_filters",
    "rank_results",
    "similarity_from_distance",
]
