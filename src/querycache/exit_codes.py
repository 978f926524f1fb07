"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~querycache.exceptions.QueryCacheError` subclass.

Example::

    $ querycache list --filter status=open
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- the API could not be reached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or an invalid query."""

EXIT_AUTH_FAILURE = 3
"""The API rejected the request (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested record was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an error status not covered above."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
