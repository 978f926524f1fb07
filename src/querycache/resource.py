"""Mutations that keep the query cache honest.

Creating, updating, deleting or bulk-importing a record can change the
contents of any cached page, whatever its filters. :class:`ResourceActions`
runs each mutation through the client and, once it succeeds, calls
:meth:`~querycache.cache.QueryCache.invalidate_all` so observed pages are
refetched and unobserved ones are dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from querycache.cache import QueryCache
from querycache.client import ListClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceActions:
    """Mutation helpers bound to one client and one cache.

    ``loading`` is ``True`` while a mutation is running and ``error`` holds
    the message of the last failure. Failures are recorded, logged and then
    re-raised; the cache is only invalidated after a successful call.

    Args:
        client: An open :class:`~querycache.client.ListClient`.
        cache: The cache whose pages the mutations may affect.
    """

    def __init__(self, client: ListClient, cache: QueryCache) -> None:
        self._client = client
        self._cache = cache
        self.loading = False
        self.error: Optional[str] = None

    async def create(self, record: dict[str, Any]) -> Any:
        return await self._mutate("creating", lambda: self._client.create(record))

    async def update(self, record_id: str, record: dict[str, Any]) -> Any:
        return await self._mutate(
            "updating", lambda: self._client.update(record_id, record)
        )

    async def delete(self, record_id: str) -> None:
        await self._mutate("deleting", lambda: self._client.delete(record_id))

    async def bulk_import(self, records: list[dict[str, Any]]) -> Any:
        return await self._mutate(
            "importing", lambda: self._client.bulk_import(records)
        )

    async def _mutate(self, action: str, call: Callable[[], Awaitable[T]]) -> T:
        self.loading = True
        self.error = None
        try:
            result = await call()
            await self._cache.invalidate_all()
            return result
        except Exception as exc:
            self.error = str(exc) or exc.__class__.__name__
            logger.error("Error %s %s: %s", action, self._client.resource_path, exc)
            raise
        finally:
            self.loading = False
