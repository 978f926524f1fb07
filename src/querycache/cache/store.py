"""Entry records and the superset dependency graph.

:class:`CacheStore` maps canonical keys to mutable :class:`CacheEntry`
records and is the single source of truth for cached pages. Entries are
created lazily and never removed; :meth:`CacheStore.link` and
:meth:`CacheStore.unlink` only rewire the pointers between an entry derived
from a wider page (``superset_key``) and that page's ``dependents``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from querycache.models import ListResult


@dataclass(frozen=True)
class EntrySnapshot:
    """Immutable view of an entry delivered to observers."""

    data: Optional[ListResult] = None
    loading: bool = False
    error: Optional[str] = None


Observer = Callable[[EntrySnapshot], None]
"""Callback invoked with a fresh :class:`EntrySnapshot` on every change."""


@dataclass
class CacheEntry:
    """State for one canonical key.

    Attributes:
        data: Last successfully fetched or derived page.
        loading: Whether a fetch for this key is in flight.
        error: Message of the last failed fetch, cleared on success.
        last_fetched: Clock time of the last population, ``0`` if never.
        pending: The in-flight fetch task, shared by concurrent callers.
        params: The query that produced ``data``.
        subscribers: Observers in registration order.
        dependents: Keys of entries whose data was sliced from this one.
        superset_key: Key of the entry this one was sliced from.
    """

    data: Optional[ListResult] = None
    loading: bool = False
    error: Optional[str] = None
    last_fetched: float = 0
    pending: Optional[asyncio.Task[Optional[ListResult]]] = None
    params: Optional[dict[str, Any]] = None
    subscribers: list[Observer] = field(default_factory=list)
    dependents: set[str] = field(default_factory=set)
    superset_key: Optional[str] = None

    def snapshot(self) -> EntrySnapshot:
        return EntrySnapshot(data=self.data, loading=self.loading, error=self.error)


class CacheStore:
    """Mapping of canonical key to :class:`CacheEntry`.

    Iteration follows insertion order, which makes superset lookup
    deterministic: the oldest covering entry wins.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def get_or_create(self, key: str) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry()
        return entry

    def items(self) -> list[tuple[str, CacheEntry]]:
        """Snapshot of ``(key, entry)`` pairs, safe to iterate while mutating."""
        return list(self._entries.items())

    def link(self, child_key: str, superset_key: str) -> None:
        """Record that *child_key*'s data was sliced from *superset_key*.

        Re-linking moves the child off its previous superset. Linking a key
        to itself, to a missing entry, or to one of its own descendants is a
        no-op, so the links always form a forest.
        """
        if child_key == superset_key:
            return
        child = self._entries.get(child_key)
        superset = self._entries.get(superset_key)
        if child is None or superset is None:
            return
        if self._is_ancestor(child_key, superset_key):
            return

        if child.superset_key != superset_key:
            self.unlink(child_key)
        child.superset_key = superset_key
        superset.dependents.add(child_key)

    def unlink(self, key: str) -> None:
        """Detach *key* from its superset, if it has one."""
        entry = self._entries.get(key)
        if entry is None or entry.superset_key is None:
            return
        superset = self._entries.get(entry.superset_key)
        if superset is not None:
            superset.dependents.discard(key)
        entry.superset_key = None

    def _is_ancestor(self, ancestor_key: str, key: str) -> bool:
        """True if *ancestor_key* appears on *key*'s superset chain."""
        seen: set[str] = set()
        current = self._entries.get(key)
        while current is not None and current.superset_key is not None:
            if current.superset_key == ancestor_key:
                return True
            if current.superset_key in seen:
                break
            seen.add(current.superset_key)
            current = self._entries.get(current.superset_key)
        return False
