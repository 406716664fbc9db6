"""Response cache backed by :mod:`diskcache`.

Stores the same HTTP/1.1 dump as :class:`~cachewire.cache.file.FileCache`,
under the same keys, but inside a :class:`diskcache.Cache` (SQLite index
plus value files). Useful when many small records would otherwise crowd a
single directory. Entries never expire.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

import diskcache
import httpx

from cachewire.cache.keys import cache_key
from cachewire.cache.wire import dump_response, load_response
from cachewire.exceptions import CacheInitError, CacheMiss, CacheWriteError


class DiskCache:
    """Disk-backed cache for HTTP responses.

    The underlying :class:`diskcache.Cache` is opened lazily by
    :meth:`init`; until then every lookup misses. Call :meth:`close` (or
    close the owning :class:`~cachewire.transport.CachingTransport`) to
    release the SQLite handle.

    Args:
        directory: Directory for the diskcache store.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()
        self._cache: Optional[diskcache.Cache] = None

    def init(self) -> None:
        if self._cache is not None:
            return
        try:
            self._cache = diskcache.Cache(str(self.directory))
        except (OSError, sqlite3.Error) as exc:
            raise CacheInitError(f"Cannot open diskcache at {self.directory}: {exc}") from exc

    def get(self, request: httpx.Request) -> httpx.Response:
        if self._cache is None:
            raise CacheMiss(f"{request.method} {request.url} (cache not initialised)")
        try:
            raw = self._cache.get(cache_key(request))
        except (OSError, sqlite3.Error, diskcache.Timeout) as exc:
            raise CacheMiss(f"Cannot read diskcache entry for {request.url}: {exc}") from exc
        if raw is None:
            raise CacheMiss(f"No diskcache entry for {request.method} {request.url}")
        return load_response(raw, request)

    def set(self, request: httpx.Request, response: httpx.Response) -> None:
        if self._cache is None:
            raise CacheWriteError("diskcache store is not initialised; call init() first")
        try:
            raw = dump_response(response, request)
        except (httpx.StreamError, httpx.DecodingError) as exc:
            raise CacheWriteError(f"Cannot serialise response for {request.url}: {exc}") from exc
        try:
            self._cache.set(cache_key(request), raw)
        except (OSError, sqlite3.Error, diskcache.Timeout) as exc:
            raise CacheWriteError(f"Cannot store diskcache entry for {request.url}: {exc}") from exc

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None
