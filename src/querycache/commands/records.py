"""Record commands -- read pages through the cache and run mutations.

``list`` is the cached read: it builds the query from ``--filter`` pairs and
``--page``/``--limit``, and with ``--prefetch N`` first loads the window of
``N`` pages that contains the requested page, so the page itself is sliced
from the cached window without a second request.

``get`` fetches one record directly. ``create``, ``update``, ``delete`` and
``import`` go through :class:`~querycache.resource.ResourceActions`, which
invalidates the cache after each successful mutation.
"""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Coroutine, Iterator, Optional, TypeVar

import typer

from querycache.cache import QueryCache, make_key
from querycache.client import ListClient
from querycache.config import resolve_config
from querycache.exceptions import ConfigError, InvalidUsageError, QueryCacheError
from querycache.exit_codes import EXIT_GENERIC_FAILURE
from querycache.output import debug, error, format_response, print_page, success, warning
from querycache.resource import ResourceActions

T = TypeVar("T")


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Report a library error on stderr and exit with its code."""
    try:
        yield
    except QueryCacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _run(coro: Coroutine[Any, Any, T]) -> T:
    with _exit_on_error():
        return asyncio.run(coro)


@asynccontextmanager
async def _session(ctx: typer.Context) -> AsyncIterator[tuple[ListClient, QueryCache]]:
    """Open a client for the active profile and a cache on top of it."""
    obj = ctx.obj or {}
    config, profile = resolve_config(
        cli_profile=obj.get("profile"), cli_base_url=obj.get("base_url")
    )
    if profile is None:
        raise ConfigError(
            "No profile configured. Run: querycache profile add NAME --base-url URL"
        )
    async with ListClient(profile) as client:
        yield client, QueryCache.from_config(client.list, config.cache)


def parse_filters(pairs: Optional[list[str]]) -> dict[str, str]:
    """Turn ``["status=open", "symbol=EURUSD"]`` into a filter dict."""
    filters: dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise InvalidUsageError(f"Filter must look like key=value, got: {pair}")
        filters[name.strip()] = value
    return filters


def prefetch_window(query: dict[str, Any], pages: int) -> dict[str, Any]:
    """Return the query for the *pages*-page window containing *query*'s page.

    For ``page=3, limit=10`` and ``pages=4`` the window is
    ``page=1, limit=40``, covering offsets ``[0, 40)``.
    """
    page = int(query["page"])
    limit = int(query["limit"])
    window_limit = limit * pages
    window_page = ((page - 1) * limit) // window_limit + 1
    return {**query, "page": window_page, "limit": window_limit}


def _load_json(data: str) -> Any:
    """Parse ``--data``: inline JSON, or ``@path`` to read it from a file."""
    if data.startswith("@"):
        path = Path(data[1:]).expanduser()
        if not path.is_file():
            raise InvalidUsageError(f"File not found: {path}")
        data = path.read_text(encoding="utf-8")
    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"Invalid JSON: {exc}") from exc


def list_command(
    ctx: typer.Context,
    filters: Optional[list[str]] = typer.Option(
        None, "--filter", "-F", help="Filter as key=value (repeatable)."
    ),
    page: int = typer.Option(1, "--page", min=1, help="Page number (1-based)."),
    limit: int = typer.Option(10, "--limit", min=1, help="Records per page."),
    prefetch: int = typer.Option(
        1,
        "--prefetch",
        min=1,
        help="Load a window of N pages in one request and slice the page from it.",
    ),
    refresh: bool = typer.Option(
        False, "--refresh", help="Bypass cached pages and fetch directly."
    ),
) -> None:
    """List one page of records.

    Example::

        querycache list --filter status=open --page 2 --limit 5
        querycache list --page 3 --limit 10 --prefetch 4
    """
    with _exit_on_error():
        query: dict[str, Any] = {**parse_filters(filters), "page": page, "limit": limit}

    async def _list() -> None:
        async with _session(ctx) as (_client, cache):
            if prefetch > 1 and not refresh:
                window = prefetch_window(query, prefetch)
                debug(f"Prefetching window {make_key(window)}")
                await cache.get(window)

            key = make_key(query)
            result = await cache.load(key, query, force=refresh)
            entry = cache.store.get(key)
            debug(f"Cache stats: {cache.stats()}")

            if result is None:
                message = entry.error if entry is not None and entry.error else "unknown error"
                error(f"Failed to list records: {message}")
                raise typer.Exit(code=EXIT_GENERIC_FAILURE)
            if not result.records:
                warning("No records on this page.")
            print_page(result)

    _run(_list())


def get_command(
    ctx: typer.Context,
    record_id: str = typer.Argument(help="Record id."),
) -> None:
    """Show a single record."""

    async def _get() -> Any:
        async with _session(ctx) as (client, _cache):
            return await client.get(record_id)

    format_response(_run(_get()))


def create_command(
    ctx: typer.Context,
    data: str = typer.Option(..., "--data", "-d", help="Record JSON, or @file."),
) -> None:
    """Create a record."""
    with _exit_on_error():
        record = _load_json(data)

    async def _create() -> Any:
        async with _session(ctx) as (client, cache):
            return await ResourceActions(client, cache).create(record)

    result = _run(_create())
    success("Record created.")
    format_response(result)


def update_command(
    ctx: typer.Context,
    record_id: str = typer.Argument(help="Record id."),
    data: str = typer.Option(..., "--data", "-d", help="Record JSON, or @file."),
) -> None:
    """Replace a record."""
    with _exit_on_error():
        record = _load_json(data)

    async def _update() -> Any:
        async with _session(ctx) as (client, cache):
            return await ResourceActions(client, cache).update(record_id, record)

    result = _run(_update())
    success(f"Record {record_id} updated.")
    format_response(result)


def delete_command(
    ctx: typer.Context,
    record_id: str = typer.Argument(help="Record id."),
) -> None:
    """Delete a record."""
    force = (ctx.obj or {}).get("force", False)
    if not force and not typer.confirm(f"Delete record {record_id}?"):
        raise typer.Exit()

    async def _delete() -> None:
        async with _session(ctx) as (client, cache):
            await ResourceActions(client, cache).delete(record_id)

    _run(_delete())
    success(f"Record {record_id} deleted.")


def import_command(
    ctx: typer.Context,
    file: Path = typer.Argument(help="JSON file: a list of records, or {resource: [...]}."),
) -> None:
    """Bulk-import records from a JSON file."""
    with _exit_on_error():
        payload = _load_json(f"@{file}")

    async def _import() -> Any:
        async with _session(ctx) as (client, cache):
            records = payload
            if isinstance(payload, dict):
                records = payload.get(client.resource_path.lstrip("/"))
            if not isinstance(records, list):
                raise InvalidUsageError("Import file must contain a list of records")
            return await ResourceActions(client, cache).bulk_import(records)

    result = _run(_import())
    success("Import finished.")
    format_response(result)
