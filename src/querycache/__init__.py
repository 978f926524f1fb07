"""querycache -- a client-side cache for paginated, filtered list queries.

Serves ``list`` queries against a remote endpoint through an in-process cache
that coalesces concurrent requests for the same query, keeps results fresh
for a short window, and answers narrower pages from an already cached wider
page without another network round-trip.

Typical usage::

    async with ListClient(profile) as client:
        cache = QueryCache(client.list)
        page = await cache.get({"status": "open", "page": 1, "limit": 10})

Modules:
    cache: Key encoding, range matching, the entry store and the loader.
    client: Async HTTP client for the list endpoint and mutations.
    resource: Mutation helpers that invalidate the cache on success.
    models: Pydantic models for configuration and list payloads.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting for the CLI.
"""

__version__ = "0.3.0"
