"""HTTP client module for querycache.

Provides :class:`ListClient`, an async client backed by
:class:`httpx.AsyncClient` for one list resource. Its ``list`` method is
the fetch function a :class:`~querycache.cache.QueryCache` is built on.

Example::

    from querycache.cache import QueryCache
    from querycache.client import ListClient

    async with ListClient(profile) as client:
        cache = QueryCache(client.list)
        page = await cache.get({"page": 1, "limit": 20})
"""

from querycache.client.async_client import ListClient

__all__ = ["ListClient"]
