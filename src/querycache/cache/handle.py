"""Read handle for consumers that follow one query over time.

A :class:`QueryHandle` is what a view holds on to: it keeps the latest
``data``/``loading``/``error`` for its query up to date through an observer,
triggers a fetch when opened on a missing or stale page, and exposes
:meth:`QueryHandle.refetch` for explicit reloads.

Example::

    async with cache.watch({"status": "open", "page": 2, "limit": 5}) as handle:
        await handle.ready()
        render(handle.data, handle.loading, handle.error)
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import TYPE_CHECKING, Any, Optional

from querycache.cache.keys import Query, make_key
from querycache.cache.store import EntrySnapshot
from querycache.models import ListResult

if TYPE_CHECKING:
    from querycache.cache.service import Disposer, QueryCache


class QueryHandle:
    """Live view of one query in a :class:`~querycache.cache.service.QueryCache`.

    Before :meth:`open` the handle reports the entry as it currently is,
    with ``loading`` forced to ``True`` when there is no data yet.

    Args:
        cache: The owning cache.
        query: Filter and pagination fields; the key is computed from it.
    """

    def __init__(self, cache: QueryCache, query: Query) -> None:
        self._cache = cache
        self._query: dict[str, Any] = dict(query)
        self.key = make_key(query)
        self._dispose: Optional[Disposer] = None
        self._initial: Optional[asyncio.Task[Any]] = None

        entry = cache.store.get_or_create(self.key)
        self._state = EntrySnapshot(
            data=entry.data,
            loading=entry.loading or entry.data is None,
            error=entry.error,
        )

    @property
    def state(self) -> EntrySnapshot:
        return self._state

    @property
    def data(self) -> Optional[ListResult]:
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def is_open(self) -> bool:
        return self._dispose is not None

    def open(self) -> QueryHandle:
        """Subscribe to the entry and load it if it is missing or stale.

        Must be called with a running event loop. Opening twice is a no-op.
        """
        if self._dispose is not None:
            return self

        self._dispose = self._cache.add_observer(self.key, self._on_change)
        entry = self._cache.store.get_or_create(self.key)
        if entry.data is None or not self._cache.is_fresh(entry):
            self._state = dataclasses.replace(self._state, loading=True)
            self._initial = self._cache.spawn(self._cache.load(self.key, self._query))
        return self

    def close(self) -> None:
        """Stop receiving updates. A fetch already started still completes."""
        if self._dispose is not None:
            self._dispose()
            self._dispose = None

    async def __aenter__(self) -> QueryHandle:
        return self.open()

    async def __aexit__(self, *args: object) -> None:
        self.close()

    async def ready(self) -> Optional[ListResult]:
        """Wait for the load started by :meth:`open`, then return ``data``."""
        if self._initial is not None:
            await asyncio.shield(self._initial)
        return self.data

    async def refetch(self) -> Optional[ListResult]:
        """Force a network fetch for this query."""
        return await self._cache.load(self.key, self._query, force=True)

    def _on_change(self, snapshot: EntrySnapshot) -> None:
        self._state = snapshot
