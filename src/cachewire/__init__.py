"""cachewire -- caching, retrying, rate-limited transport for httpx.

Wrap any :class:`httpx.BaseTransport` in a
:class:`~cachewire.transport.CachingTransport` to get read-through and
write-through response caching, bounded immediate retry, an optional
User-Agent override and optional throttling, without changing the code
that issues requests::

    from cachewire import CachingTransport, FileCache, Ticker

    transport = CachingTransport(
        retry_count=2,
        cache=FileCache("~/.cache/crawler"),
        rate_limiter=Ticker.per_second(1),
    )
    with transport.client() as client:
        client.get("https://example.com/a?x=1")

Modules:
    transport: The transport decorator.
    cache: Cache protocol and the no-op, file and diskcache backends.
    ratelimit: Blocking token sources.
    models: Pydantic configuration models.
    config: XDG-aware configuration loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Typer CLI (``cachewire fetch``, ``cachewire cache``, ``cachewire config``).
"""

__version__ = "0.1.0"

from cachewire.cache import Cache, DiskCache, FileCache, NoopCache, cache_key  # noqa: E402
from cachewire.exceptions import (  # noqa: E402
    CacheDecodeError,
    CacheInitError,
    CacheMiss,
    CacheWriteError,
    CachewireError,
    ExchangeError,
)
from cachewire.models import CacheBackend, CacheConfig, TransportConfig  # noqa: E402
from cachewire.ratelimit import Ticker, TokenSource  # noqa: E402
from cachewire.transport import CachingTransport  # noqa: E402

__all__ = [
    "Cache",
    "CacheBackend",
    "CacheConfig",
    "CacheDecodeError",
    "CacheInitError",
    "CacheMiss",
    "CacheWriteError",
    "CachewireError",
    "CachingTransport",
    "DiskCache",
    "ExchangeError",
    "FileCache",
    "NoopCache",
    "Ticker",
    "TokenSource",
    "TransportConfig",
    "cache_key",
]
