"""Canonical Pydantic models shared across all querycache modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`CacheConfig`, :class:`OutputConfig`,
    :class:`GlobalConfig`, and :class:`Profile`.

**Payload models** -- the shape of a list response as it travels through
the cache:
    :class:`ListResult`.

All models use Pydantic v2. ``ListResult`` accepts the API's camelCase wire
names (``results``, ``totalResults``, ``totalPages``) and keeps any extra
fields the server sends so that derived pages carry them unchanged.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration Models ---


class RequestConfig(BaseModel):
    """Default HTTP request settings applied to every API call in a profile."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class CacheConfig(BaseModel):
    """Query cache settings stored in :class:`GlobalConfig`.

    ``ttl_seconds`` is the freshness window: cached pages older than this
    are refreshed on next access. ``quiet_statuses`` lists HTTP statuses
    whose fetch failures are recorded on the entry but not logged (a 403
    from the list endpoint means the account has no plan configured yet).
    """

    ttl_seconds: int = Field(default=120, description="Freshness window in seconds")
    quiet_statuses: list[int] = Field(
        default_factory=lambda: [403],
        description="HTTP statuses recorded without logging",
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/querycache/config.json``.

    Loaded and saved by :func:`~querycache.config.load_global_config` and
    :func:`~querycache.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~querycache.config.resolve_config`
    for the full precedence chain.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


class Profile(BaseModel):
    """Per-API profile stored as JSON under the ``profiles/`` config directory.

    A profile names one list resource on one API. The list endpoint is
    ``GET {base_url}/{resource}``; single records live at
    ``{base_url}/{resource}/{id}`` and bulk imports are posted to
    ``{base_url}/{resource}/bulk``.

    ``headers`` are sent verbatim with every request.

    See Also:
        :func:`~querycache.config.load_profile`: Deserialise a profile by name.
        :func:`~querycache.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    base_url: str = Field(description="API base URL, e.g. http://localhost:5000/v1")
    resource: str = Field(default="trades", description="List resource name")
    headers: dict[str, str] = Field(default_factory=dict)
    request: RequestConfig = Field(default_factory=RequestConfig)

    @property
    def resource_path(self) -> str:
        """The list endpoint path relative to ``base_url``."""
        return "/" + self.resource.strip("/")


# --- Payload Models ---


class ListResult(BaseModel):
    """One page of records returned by the list endpoint.

    The cache owns these objects: derived pages are built with
    :meth:`~pydantic.BaseModel.model_copy` so the superset page is never
    mutated.

    Example::

        ListResult.model_validate({
            "results": [{"id": 1}],
            "totalResults": 42,
            "page": 1,
            "limit": 10,
            "totalPages": 5,
        })
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    records: list[dict[str, Any]] = Field(default_factory=list, alias="results")
    total_count: Optional[int] = Field(default=None, alias="totalResults")
    page: int = 1
    limit: int = 10
    total_pages: int = Field(default=1, alias="totalPages")

    def to_wire(self) -> dict[str, Any]:
        """Serialise back to the API's camelCase shape."""
        return self.model_dump(mode="json", by_alias=True)
