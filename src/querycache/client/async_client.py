"""Asynchronous HTTP client for one list resource.

:class:`ListClient` wraps :class:`httpx.AsyncClient` and exposes the calls the
cache and the mutation helpers need: ``list`` (the cached read), ``get`` for
a single record, and ``create``/``update``/``delete``/``bulk_import``.

Error statuses are mapped to the :mod:`querycache.exceptions` hierarchy with
``status_code`` set so the cache can tell an expected 403 ("plan not
configured") from a real failure. Requests are sent once; there is no retry.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from querycache.exceptions import (
    AuthError,
    ConnectionError_,
    NotFoundError,
    QueryCacheError,
    ServerError,
)
from querycache.models import ListResult, Profile
from querycache.output import get_output


class ListClient:
    """Asynchronous client for ``{base_url}/{resource}``.

    Must be used as an async context manager.

    Args:
        profile: Connection profile (``base_url``, ``resource``, extra
            headers, timeout and SSL settings).
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.

    Example::

        async with ListClient(profile) as client:
            page = await client.list({"status": "open", "page": 1, "limit": 10})
    """

    def __init__(
        self,
        profile: Profile,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._profile = profile
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> ListClient:
        config = self._profile.request
        self._client = httpx.AsyncClient(
            base_url=self._profile.base_url,
            headers=self._profile.headers,
            timeout=config.timeout,
            verify=config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def resource_path(self) -> str:
        return self._profile.resource_path

    # ------------------------------------------------------------------ #
    # Resource calls
    # ------------------------------------------------------------------ #

    async def list(self, query: dict[str, Any]) -> ListResult:
        """Fetch one page of records.

        ``None``-valued fields are not sent.

        Raises:
            QueryCacheError: A subclass matching the failure, with
                ``status_code`` set for HTTP errors.
        """
        params = {name: value for name, value in query.items() if value is not None}
        response = await self.request("GET", self.resource_path, params=params)
        try:
            return ListResult.model_validate(response.json())
        except ValueError as exc:
            raise ServerError(
                f"Unexpected list response from {self.resource_path}: {exc}",
                status_code=response.status_code,
            ) from exc

    async def get(self, record_id: str) -> Any:
        """Fetch a single record (not cached)."""
        response = await self.request("GET", f"{self.resource_path}/{record_id}")
        return _body(response)

    async def create(self, record: dict[str, Any]) -> Any:
        response = await self.request("POST", self.resource_path, json_body=record)
        return _body(response)

    async def update(self, record_id: str, record: dict[str, Any]) -> Any:
        response = await self.request(
            "PUT", f"{self.resource_path}/{record_id}", json_body=record
        )
        return _body(response)

    async def delete(self, record_id: str) -> None:
        await self.request("DELETE", f"{self.resource_path}/{record_id}")

    async def bulk_import(self, records: list[dict[str, Any]]) -> Any:
        """Post *records* to ``/{resource}/bulk`` as ``{resource: records}``."""
        response = await self.request(
            "POST",
            f"{self.resource_path}/bulk",
            json_body={self._profile.resource: records},
        )
        return _body(response)

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Send one request and map error statuses to exceptions.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On any other error status.
            ConnectionError_: On any transport failure (network, timeout, protocol, proxy).
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        get_output().debug(f"{method} {path} {params or ''}".rstrip())
        kwargs: dict[str, Any] = {"method": method, "url": path}
        if params:
            kwargs["params"] = params
        if json_body is not None:
            kwargs["json"] = json_body

        try:
            response = await self._client.request(**kwargs)
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Connection failed: {exc}") from exc

        _raise_for_status(response)
        return response


def _body(response: httpx.Response) -> Any:
    """Decoded JSON body, raw text for non-JSON bodies, ``None`` when empty."""
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _raise_for_status(response: httpx.Response) -> None:
    """Raise a typed exception for error HTTP status codes."""
    status = response.status_code
    if status < 400:
        return

    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    full_msg = msg or f"API Error: {status}"

    exc_type: type[QueryCacheError]
    if status in (401, 403):
        exc_type = AuthError
    elif status == 404:
        exc_type = NotFoundError
    else:
        exc_type = ServerError
    raise exc_type(full_msg, status_code=status)
