"""Superset/subset range matching between cached pages and requested pages.

A cached page for ``{status: open, page: 1, limit: 10}`` holding ten records
realizes the offset range ``[0, 10)``. Any request with the same filters
whose requested range falls inside it -- ``page=1, limit=5`` (``[0, 5)``) or
``page=2, limit=5`` (``[5, 10)``) -- can be answered by slicing those records
instead of calling the API.

All functions here are pure.
"""

from __future__ import annotations

import math
from typing import Optional

from querycache.cache.keys import PAGINATION_FIELDS, Query, page_range
from querycache.models import ListResult


def filters_equal(a: Query, b: Query) -> bool:
    """Return True if *a* and *b* agree on every non-pagination field.

    A field absent from one query compares equal to ``None`` in the other.
    """
    names = (set(a) | set(b)) - PAGINATION_FIELDS
    return all(a.get(name) == b.get(name) for name in names)


def realized_end(query: Query, result_count: int) -> int:
    """End offset of the records a page for *query* actually holds."""
    return page_range(query).start + result_count


def can_cover(superset_query: Query, superset_count: int, target_query: Query) -> bool:
    """Return True if a cached page can answer *target_query* by slicing.

    Args:
        superset_query: The query that produced the cached page.
        superset_count: Number of records in the cached page.
        target_query: The query being requested.
    """
    if superset_count <= 0:
        return False
    if not filters_equal(superset_query, target_query):
        return False

    superset = page_range(superset_query)
    target = page_range(target_query)
    return (
        target.start >= superset.start
        and target.end <= realized_end(superset_query, superset_count)
    )


def derive_slice(
    superset_data: Optional[ListResult],
    superset_query: Query,
    target_query: Query,
) -> Optional[ListResult]:
    """Build the page for *target_query* out of a cached superset page.

    The records are the superset's ``[offset, offset + limit)`` where
    ``offset`` is the distance between the two pages' start offsets. Paging
    metadata is rewritten for the target and ``total_pages`` recomputed
    from the preserved ``total_count``.

    Returns:
        The derived page, or ``None`` when the superset has no records or
        starts after the target.
    """
    if superset_data is None or not superset_data.records:
        return None

    superset = page_range(superset_query)
    target = page_range(target_query)
    offset = target.start - superset.start
    if offset < 0:
        return None

    total = superset_data.total_count or len(superset_data.records) or 1
    return superset_data.model_copy(
        update={
            "records": superset_data.records[offset : offset + target.limit],
            "page": target.page,
            "limit": target.limit,
            "total_pages": max(1, math.ceil(total / target.limit)),
        }
    )
