"""The query cache: loader, observer bus and global invalidation.

:class:`QueryCache` decides, for each requested page, whether to

1. slice it out of a fresh cached page that covers it (no network call),
2. return its own cached page while still fresh,
3. join a fetch for the same key that is already in flight, or
4. fetch it from the API.

Results are written into a :class:`~querycache.cache.store.CacheStore` and
pushed to observers. When a page is refetched, pages that were sliced from
it are updated in place (one hop only); pages it no longer covers are
detached and refetched on their own if anyone is watching them.

A ``QueryCache`` is owned by a single asyncio event loop. Every state change
happens synchronously; the only suspension point is awaiting the fetch, and
the check-then-fetch sequence in :meth:`QueryCache.load` contains no
``await``, so two tasks on the loop can never start two fetches for the same
key unless one of them forces it.

.. note::
   Fetches are never cancelled. If a forced fetch is started while an older
   fetch for the same key is in flight and the older one completes last, its
   result overwrites the newer one.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Collection, Coroutine, Optional

from querycache.cache.keys import Query, make_key
from querycache.cache.ranges import can_cover, derive_slice
from querycache.cache.store import CacheEntry, CacheStore, EntrySnapshot, Observer
from querycache.models import CacheConfig, ListResult

if TYPE_CHECKING:
    from querycache.cache.handle import QueryHandle

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 120.0
PLAN_NOT_CONFIGURED = 403

Fetcher = Callable[[dict[str, Any]], Awaitable[ListResult]]
Clock = Callable[[], float]
Disposer = Callable[[], None]


class QueryCache:
    """In-memory cache for paginated list queries.

    Args:
        fetch: Coroutine function performing the network ``list`` call. It
            receives the query dict and returns a
            :class:`~querycache.models.ListResult`; failures may raise any
            exception, ideally a
            :class:`~querycache.exceptions.QueryCacheError` with
            ``status_code`` set.
        clock: Returns the current time in seconds. Defaults to
            :func:`time.time`.
        ttl_seconds: Freshness window for cached pages.
        quiet_statuses: HTTP statuses whose failures are recorded on the
            entry without being logged.

    Example::

        cache = QueryCache(client.list)
        dispose = cache.subscribe(key, lambda snap: print(snap.loading))
        page = await cache.load(key, {"status": "open", "page": 1, "limit": 10})
    """

    def __init__(
        self,
        fetch: Fetcher,
        *,
        clock: Clock = time.time,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        quiet_statuses: Collection[int] = (PLAN_NOT_CONFIGURED,),
    ) -> None:
        self._fetch = fetch
        self._clock = clock
        self._ttl = ttl_seconds
        self._quiet_statuses = frozenset(quiet_statuses)
        self._store = CacheStore()
        self._background: set[asyncio.Task[Any]] = set()
        self._counters = {
            "fetches": 0,
            "derived": 0,
            "fresh_hits": 0,
            "coalesced": 0,
            "errors": 0,
        }

    @classmethod
    def from_config(
        cls,
        fetch: Fetcher,
        config: CacheConfig,
        clock: Clock = time.time,
    ) -> QueryCache:
        """Build a cache from the ``cache`` section of the global config."""
        return cls(
            fetch,
            clock=clock,
            ttl_seconds=config.ttl_seconds,
            quiet_statuses=config.quiet_statuses,
        )

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def is_fresh(self, entry: CacheEntry) -> bool:
        """True if *entry* was populated less than ``ttl_seconds`` ago."""
        if entry.last_fetched <= 0:
            return False
        return self._clock() - entry.last_fetched < self._ttl

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    async def get(self, query: Query, force: bool = False) -> Optional[ListResult]:
        """Load *query*, computing its canonical key."""
        return await self.load(make_key(query), query, force=force)

    async def load(
        self, key: str, query: Query, force: bool = False
    ) -> Optional[ListResult]:
        """Resolve the page for *key* from cache, a superset, or the network.

        Fetch failures never propagate: they are stored on the entry's
        ``error`` and ``None`` is returned.

        Args:
            key: Canonical key of *query* (see
                :func:`~querycache.cache.keys.make_key`).
            query: Filter and pagination fields.
            force: Skip superset slicing, the freshness check and request
                coalescing, and always start a new fetch.

        Returns:
            The page, or ``None`` if the fetch failed.
        """
        entry = self._store.get_or_create(key)
        entry.params = dict(query)

        if not force:
            match = self.find_superset(key, entry.params)
            if match is not None:
                superset_key, superset = match
                derived = derive_slice(superset.data, superset.params or {}, entry.params)
                if derived is not None:
                    entry.data = derived
                    entry.last_fetched = superset.last_fetched
                    entry.error = None
                    entry.loading = _in_flight(entry)
                    self._store.link(key, superset_key)
                    self._counters["derived"] += 1
                    logger.debug("Derived %s from %s", key, superset_key)
                    self.notify(key)
                    return entry.data

        self._store.unlink(key)

        if not force and entry.data is not None and self.is_fresh(entry):
            entry.loading = _in_flight(entry)
            self._counters["fresh_hits"] += 1
            self.notify(key)
            return entry.data

        if not force and entry.pending is not None:
            self._counters["coalesced"] += 1
            return await asyncio.shield(entry.pending)

        task = asyncio.create_task(self._run_fetch(key, entry.params))
        entry.pending = task
        entry.loading = True
        entry.error = None
        self._counters["fetches"] += 1
        self.notify(key)
        return await asyncio.shield(task)

    def find_superset(
        self, key: str, query: Query
    ) -> Optional[tuple[str, CacheEntry]]:
        """Return the first other fresh entry whose page covers *query*."""
        for other_key, other in self._store.items():
            if other_key == key or other.data is None or other.params is None:
                continue
            if not self.is_fresh(other):
                continue
            if can_cover(other.params, len(other.data.records), query):
                return other_key, other
        return None

    async def _run_fetch(self, key: str, query: dict[str, Any]) -> Optional[ListResult]:
        entry = self._store.get_or_create(key)
        task = asyncio.current_task()
        try:
            result = await self._fetch(query)
        except Exception as exc:
            entry.error = str(exc) or exc.__class__.__name__
            self._counters["errors"] += 1
            if getattr(exc, "status_code", None) not in self._quiet_statuses:
                logger.error("Error fetching %s: %s", key, exc)
            return None
        else:
            entry.data = result
            entry.last_fetched = self._clock()
            entry.error = None
            self.propagate_to_dependents(key)
            return result
        finally:
            # A forced fetch may have replaced the handle while this one ran.
            if entry.pending is task:
                entry.pending = None
            entry.loading = _in_flight(entry)
            self.notify(key)

    def propagate_to_dependents(self, key: str) -> None:
        """Re-slice the direct dependents of *key* from its current page.

        Dependents the page no longer covers are detached and, if observed,
        refetched independently. Dependents of dependents are left alone.
        """
        entry = self._store.get(key)
        if entry is None or not entry.dependents:
            return

        count = len(entry.data.records) if entry.data is not None else 0
        for dependent_key in sorted(entry.dependents):
            dependent = self._store.get(dependent_key)
            if dependent is None or dependent.params is None:
                continue

            derived = None
            if entry.params is not None and can_cover(entry.params, count, dependent.params):
                derived = derive_slice(entry.data, entry.params, dependent.params)

            if derived is not None:
                dependent.data = derived
                dependent.last_fetched = entry.last_fetched
                dependent.error = None
                dependent.loading = _in_flight(dependent)
                self.notify(dependent_key)
                continue

            logger.debug("%s no longer covers %s", key, dependent_key)
            self._store.unlink(dependent_key)
            dependent.last_fetched = 0
            if dependent.subscribers:
                self.spawn(self.load(dependent_key, dependent.params, force=True))

    # ------------------------------------------------------------------ #
    # Observers
    # ------------------------------------------------------------------ #

    def add_observer(self, key: str, observer: Observer) -> Disposer:
        """Register *observer* for *key* and call it once with the current state.

        Returns:
            A disposer that removes the observer; calling it twice is safe.
        """
        entry = self._store.get_or_create(key)
        entry.subscribers.append(observer)
        self._deliver(key, observer, entry.snapshot())

        def dispose() -> None:
            self.remove_observer(key, observer)

        return dispose

    def remove_observer(self, key: str, observer: Observer) -> None:
        entry = self._store.get(key)
        if entry is not None and observer in entry.subscribers:
            entry.subscribers.remove(observer)

    subscribe = add_observer

    def notify(self, key: str) -> None:
        """Send the current snapshot of *key* to each of its observers."""
        entry = self._store.get(key)
        if entry is None or not entry.subscribers:
            return
        snapshot = entry.snapshot()
        for observer in list(entry.subscribers):
            self._deliver(key, observer, snapshot)

    def _deliver(self, key: str, observer: Observer, snapshot: EntrySnapshot) -> None:
        try:
            observer(snapshot)
        except Exception:
            logger.exception("Observer for %s raised", key)

    def watch(self, query: Query) -> QueryHandle:
        """Return a :class:`~querycache.cache.handle.QueryHandle` for *query*."""
        from querycache.cache.handle import QueryHandle

        return QueryHandle(self, query)

    # ------------------------------------------------------------------ #
    # Invalidation
    # ------------------------------------------------------------------ #

    async def invalidate_all(self) -> None:
        """Mark every entry stale after a mutation.

        Entries nobody observes lose their data and are refetched on next
        access; observed entries are refetched now and this coroutine waits
        for those fetches.
        """
        loads = []
        for key, entry in self._store.items():
            entry.last_fetched = 0
            if not entry.subscribers or entry.params is None:
                entry.data = None
                continue
            loads.append(self.load(key, entry.params, force=True))

        logger.debug("Invalidated %d entries, refetching %d", len(self._store), len(loads))
        if loads:
            await asyncio.gather(*loads)

    # ------------------------------------------------------------------ #
    # Background work
    # ------------------------------------------------------------------ #

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run *coro* as a tracked background task on the running loop."""
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until no fetch or background load is outstanding."""
        while True:
            tasks = {t for t in self._background if not t.done()}
            tasks.update(
                entry.pending
                for _, entry in self._store.items()
                if entry.pending is not None and not entry.pending.done()
            )
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def stats(self) -> dict[str, Any]:
        """Return counters describing how requests were served."""
        return {
            "entries": len(self._store),
            "ttl_seconds": self._ttl,
            **self._counters,
        }


def _in_flight(entry: CacheEntry) -> bool:
    """True while a fetch for *entry* is still running."""
    return entry.pending is not None and not entry.pending.done()
