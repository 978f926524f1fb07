"""In-memory query cache for paginated list endpoints.

This package provides :class:`QueryCache`, which serves list queries from
process memory, coalesces concurrent fetches of the same query, and slices
narrower pages out of wider cached ones. Entries live only as long as the
process; nothing is written to disk.

Modules:
    keys: Canonical key encoding and page ranges.
    ranges: Pure superset/subset matching and slicing.
    store: Entry records and the superset dependency graph.
    service: The loader, observer bus and global invalidation.
    handle: Live read handle for a single query.
"""

from querycache.cache.handle import QueryHandle
from querycache.cache.keys import PageRange, make_key, page_range
from querycache.cache.ranges import can_cover, derive_slice, filters_equal
from querycache.cache.service import QueryCache
from querycache.cache.store import CacheEntry, CacheStore, EntrySnapshot

__all__ = [
    "CacheEntry",
    "CacheStore",
    "EntrySnapshot",
    "PageRange",
    "QueryCache",
    "QueryHandle",
    "can_cover",
    "derive_slice",
    "filters_equal",
    "make_key",
    "page_range",
]
