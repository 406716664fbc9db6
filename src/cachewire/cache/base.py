"""The cache contract shared by every response store.

A cache is anything with three operations -- :meth:`Cache.init`,
:meth:`Cache.get` and :meth:`Cache.set` -- keyed by the request's method
and URL. Backends are plain classes that satisfy the :class:`Cache`
protocol; they do not need to inherit from anything.

:class:`NoopCache` is the default used by
:class:`~cachewire.transport.CachingTransport` when no cache is configured.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx

from cachewire.exceptions import CacheMiss


@runtime_checkable
class Cache(Protocol):
    """Protocol implemented by response caches.

    Implementations must honour these semantics:

    * ``init`` is idempotent and raises
      :class:`~cachewire.exceptions.CacheInitError` only when the storage
      medium cannot be prepared.
    * ``get`` never mutates state. It raises
      :class:`~cachewire.exceptions.CacheMiss` when nothing is stored for
      the request and :class:`~cachewire.exceptions.CacheDecodeError` (a
      ``CacheMiss``) when a record exists but cannot be turned back into a
      response.
    * ``set`` overwrites any previous record for the same key and raises
      :class:`~cachewire.exceptions.CacheWriteError` on failure.
    """

    def init(self) -> None: ...

    def get(self, request: httpx.Request) -> httpx.Response: ...

    def set(self, request: httpx.Request, response: httpx.Response) -> None: ...


class NoopCache:
    """Cache that stores nothing and never hits."""

    def init(self) -> None:
        return None

    def get(self, request: httpx.Request) -> httpx.Response:
        raise CacheMiss(f"{request.method} {request.url} (caching disabled)")

    def set(self, request: httpx.Request, response: httpx.Response) -> None:
        return None
