"""Exception hierarchy for querycache.

All exceptions inherit from :class:`QueryCacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`querycache.exit_codes`
and an optional ``status_code`` holding the HTTP status that caused it.

The cache never raises fetch failures to its consumers: the loader records
``str(exc)`` on the entry and uses ``status_code`` to decide whether the
failure is worth logging.

Subclass hierarchy::

    QueryCacheError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- AuthError           (exit 3)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import Optional

from querycache.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class QueryCacheError(Exception):
    """Base exception for all querycache errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
        status_code: HTTP status of the failed response, if any.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code
        self.status_code = status_code


class InvalidUsageError(QueryCacheError):
    """Raised for invalid CLI arguments or malformed queries (e.g. ``page=0``)."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(QueryCacheError):
    """Raised when the API answers 401 or 403.

    A 403 on the list endpoint means the account has no plan configured yet;
    the cache treats it as an expected condition.
    """

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(QueryCacheError):
    """Raised when the API returns HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class ServerError(QueryCacheError):
    """Raised for HTTP 5xx and any other unmapped error status."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(QueryCacheError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(QueryCacheError):
    """Raised for configuration problems (missing profiles, invalid JSON)."""

    exit_code = EXIT_GENERIC_FAILURE
