"""Canonical key encoding for list queries.

A query is a mapping of filter fields plus the two pagination fields
``page`` and ``limit``. Two queries that differ only in field order, or in
whether a filter is absent versus ``None``, encode to the same key::

    >>> make_key({"status": "open", "page": 1, "limit": 10})
    '{"limit":10,"page":1,"status":"open"}'
    >>> make_key({"limit": "10", "symbol": None, "status": "open"})
    '{"limit":10,"page":1,"status":"open"}'
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from querycache.exceptions import InvalidUsageError

PAGINATION_FIELDS = frozenset({"page", "limit"})

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

Query = Mapping[str, Any]


@dataclass(frozen=True)
class PageRange:
    """Pagination of a query expressed as an offset range.

    ``end`` is ``start + limit`` -- the range the query *requests*. The range
    a cached page actually *realizes* depends on how many records came back;
    see :func:`querycache.cache.ranges.realized_end`.
    """

    page: int
    limit: int

    @property
    def start(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def end(self) -> int:
        return self.start + self.limit


def _coerce_positive(query: Query, name: str, default: int) -> int:
    raw = query.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise InvalidUsageError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise InvalidUsageError(f"{name} must be >= 1, got {value}")
    return value


def page_range(query: Query) -> PageRange:
    """Return the :class:`PageRange` requested by *query*.

    Missing ``page``/``limit`` default to ``1``/``10``.

    Raises:
        InvalidUsageError: If either field is not a positive integer.
    """
    return PageRange(
        page=_coerce_positive(query, "page", DEFAULT_PAGE),
        limit=_coerce_positive(query, "limit", DEFAULT_LIMIT),
    )


def filter_fields(query: Query) -> dict[str, Any]:
    """Return the non-pagination fields of *query* that carry a value."""
    return {
        name: value
        for name, value in query.items()
        if name not in PAGINATION_FIELDS and value is not None
    }


def make_key(query: Query) -> str:
    """Encode *query* as its canonical cache key."""
    rng = page_range(query)
    normalized = filter_fields(query)
    normalized["page"] = rng.page
    normalized["limit"] = rng.limit
    return json.dumps(normalized, sort_keys=True, separators=(",", ":"), default=str)
