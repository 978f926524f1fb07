"""Shared test fixtures for querycache.

Provides a controllable clock, an in-memory fake of the list endpoint,
isolated config directories and output state management. These fixtures are
discovered by pytest and available to all test modules.
"""

from __future__ import annotations

import asyncio
import json
import math
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest
from typer.testing import CliRunner

from querycache.cache import QueryCache
from querycache.models import ListResult, Profile
from querycache.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests():
    """Reset the global OutputManager after every test.

    The manager holds Rich consoles bound to the streams that were current
    when it was created; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Clock and fake list endpoint
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeApi:
    """In-memory stand-in for the list endpoint.

    Records every query it receives in :attr:`calls`. Set :attr:`gate` to an
    unset :class:`asyncio.Event` to hold fetches in flight, or
    :attr:`fail_with` to make them raise.
    """

    def __init__(self, records: list[dict[str, Any]]) -> None:
        self.records = records
        self.calls: list[dict[str, Any]] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail_with: Optional[Exception] = None

    async def list(self, query: dict[str, Any]) -> ListResult:
        self.calls.append(dict(query))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

        filters = {k: v for k, v in query.items() if k not in ("page", "limit")}
        matching = [
            r for r in self.records if all(r.get(k) == v for k, v in filters.items())
        ]
        page = int(query.get("page", 1))
        limit = int(query.get("limit", 10))
        start = (page - 1) * limit
        return ListResult(
            records=[dict(r) for r in matching[start : start + limit]],
            total_count=len(matching),
            page=page,
            limit=limit,
            total_pages=max(1, math.ceil(len(matching) / limit)),
        )


def make_records(open_count: int = 25, closed_count: int = 5) -> list[dict[str, Any]]:
    """``open_count`` open trades (ids 1..) followed by ``closed_count`` closed ones."""
    records = [{"id": i, "status": "open"} for i in range(1, open_count + 1)]
    records += [
        {"id": i, "status": "closed"}
        for i in range(open_count + 1, open_count + closed_count + 1)
    ]
    return records


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api() -> FakeApi:
    return FakeApi(make_records())


@pytest.fixture
def cache(api: FakeApi, clock: FakeClock) -> QueryCache:
    return QueryCache(api.list, clock=clock)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG directories at tmp_path, clear QUERYCACHE_* env vars and chdir there."""
    monkeypatch.setattr("querycache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["QUERYCACHE_PROFILE", "QUERYCACHE_BASE_URL"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# HTTP-level fake of the trades API for httpx.MockTransport
# ---------------------------------------------------------------------------


class TradesServer:
    """Request handler emulating ``{base}/v1/trades`` for :class:`httpx.MockTransport`.

    Serves the list endpoint with filters and pagination, single-record
    reads, create/update/delete and bulk import. Every request is kept in
    :attr:`requests`. Setting :attr:`fail_status` makes every request fail
    with that status.
    """

    prefix = "/v1/trades"

    def __init__(self, records: list[dict[str, Any]]) -> None:
        self.records = records
        self.requests: list[httpx.Request] = []
        self.fail_status: Optional[int] = None
        self._next_id = max((r["id"] for r in records), default=0) + 1

    def list_requests(self) -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == "GET" and r.url.path == self.prefix
        ]

    def _add(self, record: dict[str, Any]) -> dict[str, Any]:
        record = {**record, "id": self._next_id}
        self._next_id += 1
        self.records.append(record)
        return record

    def _find(self, record_id: str) -> Optional[dict[str, Any]]:
        for record in self.records:
            if str(record["id"]) == record_id:
                return record
        return None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            message = "Plan not configured" if self.fail_status == 403 else "Internal error"
            return httpx.Response(self.fail_status, json={"message": message})

        path = request.url.path
        if path == self.prefix and request.method == "GET":
            params = dict(request.url.params)
            page = int(params.pop("page", 1))
            limit = int(params.pop("limit", 10))
            matching = [
                r
                for r in self.records
                if all(str(r.get(k)) == v for k, v in params.items())
            ]
            start = (page - 1) * limit
            return httpx.Response(
                200,
                json={
                    "results": matching[start : start + limit],
                    "totalResults": len(matching),
                    "page": page,
                    "limit": limit,
                    "totalPages": max(1, math.ceil(len(matching) / limit)),
                },
            )
        if path == self.prefix and request.method == "POST":
            return httpx.Response(201, json=self._add(json.loads(request.content)))
        if path == f"{self.prefix}/bulk" and request.method == "POST":
            body = json.loads(request.content)
            for record in body["trades"]:
                self._add(record)
            return httpx.Response(201, json={"inserted": len(body["trades"])})
        if path.startswith(f"{self.prefix}/"):
            record = self._find(path.rsplit("/", 1)[1])
            if record is None:
                return httpx.Response(404, json={"message": "Trade not found"})
            if request.method == "GET":
                return httpx.Response(200, json=record)
            if request.method == "PUT":
                record.update(json.loads(request.content))
                return httpx.Response(200, json=record)
            if request.method == "DELETE":
                self.records.remove(record)
                return httpx.Response(204)
        return httpx.Response(404, json={"message": f"No route for {path}"})


@pytest.fixture
def trades_server() -> TradesServer:
    return TradesServer(make_records())


@pytest.fixture
def profile() -> Profile:
    return Profile(name="journal", base_url="http://api.test/v1")


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_env(
    isolated_config: Path,
    trades_server: TradesServer,
    profile: Profile,
    monkeypatch: pytest.MonkeyPatch,
) -> TradesServer:
    """Saved ``journal`` profile whose clients talk to *trades_server*."""
    from querycache.client import ListClient
    from querycache.config import save_profile

    save_profile(profile)
    transport = httpx.MockTransport(trades_server)
    monkeypatch.setattr(
        "querycache.commands.records.ListClient",
        lambda p: ListClient(p, transport=transport),
    )
    return trades_server
