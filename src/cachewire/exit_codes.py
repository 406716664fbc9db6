"""Process exit codes used by the ``cachewire`` CLI.

Errors carry one of these on :attr:`~cachewire.exceptions.CachewireError.exit_code`;
``cachewire fetch`` also maps the final HTTP status onto them. Scripts can
tell a cache miss from an unreachable origin without reading stderr::

    $ cachewire cache show https://example.com/a
    $ echo $?
    3
"""

EXIT_SUCCESS = 0

EXIT_GENERIC_FAILURE = 1
"""Anything without a more specific code."""

EXIT_INVALID_USAGE = 2
"""Bad arguments, an unusable URL, or configuration that fails validation."""

EXIT_CACHE_MISS = 3
"""Nothing usable is stored for the method and URL."""

EXIT_NOT_FOUND = 4
"""The final response was HTTP 404."""

EXIT_SERVER_ERROR = 5
"""The final response had any other status of 400 or above."""

EXIT_CONNECTION_ERROR = 6
"""Every attempt failed below HTTP (refused, timed out, DNS, TLS)."""
