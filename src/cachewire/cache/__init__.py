"""Response caches for :class:`~cachewire.transport.CachingTransport`.

Every backend satisfies the three-operation :class:`Cache` protocol
(``init``, ``get``, ``set``) and is keyed by
:func:`~cachewire.cache.keys.cache_key`:

* :class:`NoopCache` -- never hits, never stores; the transport default.
* :class:`FileCache` -- one human-inspectable file per request.
* :class:`DiskCache` -- the same records inside a :mod:`diskcache` store.

:func:`create_cache` builds the backend selected by a
:class:`~cachewire.models.TransportConfig`.
"""

from __future__ import annotations

from cachewire.cache.base import Cache, NoopCache
from cachewire.cache.disk import DiskCache
from cachewire.cache.file import CacheRecordInfo, FileCache
from cachewire.cache.keys import cache_key
from cachewire.config import default_cache_root
from cachewire.models import CacheBackend, TransportConfig


def create_cache(config: TransportConfig) -> Cache:
    """Instantiate (but do not initialise) the cache backend for *config*."""
    backend = config.cache.backend
    if backend == CacheBackend.NONE:
        return NoopCache()
    root = default_cache_root(config)
    if backend == CacheBackend.DISKCACHE:
        return DiskCache(root)
    return FileCache(root)


__all__ = [
    "Cache",
    "CacheRecordInfo",
    "DiskCache",
    "FileCache",
    "NoopCache",
    "cache_key",
    "create_cache",
]
