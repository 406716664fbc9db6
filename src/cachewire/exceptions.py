"""Exception hierarchy for cachewire.

All cachewire-specific exceptions inherit from :class:`CachewireError`,
which carries an ``exit_code`` attribute mapped to a constant from
:mod:`cachewire.exit_codes`. The CLI entry point in
:func:`cachewire.app.main` catches ``CachewireError`` and exits with the
appropriate code.

Only exchange failures ever escape :class:`~cachewire.transport.CachingTransport`;
every cache error is absorbed there. Exchange failures are not wrapped:
they are the :class:`httpx.TransportError` raised by the wrapped
transport, exported here as :data:`ExchangeError`.

Subclass hierarchy::

    CachewireError (exit 1)
    +-- CacheError
    |   +-- CacheMiss          (exit 3)
    |   |   +-- CacheDecodeError
    |   +-- CacheInitError
    |   +-- CacheWriteError
    +-- ConfigError            (exit 2)
"""

import httpx

from cachewire.exit_codes import (
    EXIT_CACHE_MISS,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)

ExchangeError = httpx.TransportError
"""Failure of the wrapped exchange, retried and then re-raised unchanged."""


class CachewireError(Exception):
    """Base exception for all cachewire errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`cachewire.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class CacheError(CachewireError):
    """Base class for failures raised by :class:`~cachewire.cache.Cache` backends."""


class CacheMiss(CacheError):
    """Raised by ``Cache.get`` when no usable record exists for a request.

    This is an expected condition; the transport treats it as a signal to
    go to the network and does not log it.
    """

    exit_code = EXIT_CACHE_MISS


class CacheDecodeError(CacheMiss):
    """Raised when a record exists but does not parse as an HTTP response."""


class CacheInitError(CacheError):
    """Raised when ``Cache.init`` cannot prepare the storage medium."""


class CacheWriteError(CacheError):
    """Raised when ``Cache.set`` cannot serialise or persist a response."""


class ConfigError(CachewireError):
    """Raised for configuration problems (invalid JSON, failed validation, bad env values)."""

    exit_code = EXIT_INVALID_USAGE
