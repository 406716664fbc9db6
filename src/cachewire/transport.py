"""Caching, retrying, rate-limited transport for :mod:`httpx`.

:class:`CachingTransport` wraps any :class:`httpx.BaseTransport` and, for
every request:

1. **Cache lookup** -- a hit is returned as-is. No exchange, no rate
   limiting, no header changes.
2. **User-Agent override** -- when configured, replaces the request's
   ``User-Agent`` header.
3. **Rate limiting** -- waits for one token from the configured
   :class:`~cachewire.ratelimit.TokenSource`.
4. **Exchange with retry** -- a transport error or a status of 400 or
   above is retried immediately, up to ``retry_count`` extra attempts. No
   backoff.
5. **Write-through** -- a final status below 400 is buffered and stored
   in the cache, and the caller gets an unread copy of it. A failing write
   is logged and otherwise ignored. Without a cache the response passes
   through untouched and still streams.

A final status of 400 or above is returned, not raised. Only the wrapped
transport's last error escapes, unchanged.

Example::

    transport = CachingTransport(
        retry_count=2,
        cache=FileCache("~/.cache/crawler"),
        rate_limiter=Ticker.per_second(1),
        user_agent="crawler/1.0",
    )
    with transport.client(timeout=10) as client:
        page = client.get("https://example.com/listing?page=2")
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from cachewire.cache import Cache, NoopCache, create_cache
from cachewire.exceptions import CacheMiss, CacheWriteError
from cachewire.models import TransportConfig
from cachewire.ratelimit import Ticker, TokenSource

logger = logging.getLogger(__name__)


class CachingTransport(httpx.BaseTransport):
    """Transport decorator adding read/write-through caching, retry and throttling.

    Safe to share between threads as long as the wrapped transport, cache
    and token source are. Retries of one request run strictly in sequence.

    Only :class:`httpx.TransportError` counts as a retryable exchange error.
    This is a deliberate narrowing: any other exception escapes on the first
    attempt.

    Args:
        transport: The transport performing real exchanges. Defaults to a
            fresh :class:`httpx.HTTPTransport`.
        retry_count: Extra attempts after a failed first exchange. ``0``
            means a single attempt.
        rate_limiter: Optional blocking token source consulted once per
            cache miss, before the first attempt.
        cache: Response store. Defaults to :class:`~cachewire.cache.NoopCache`.
        user_agent: Optional ``User-Agent`` value forced onto outgoing
            requests.

    Raises:
        ValueError: If ``retry_count`` is negative.
    """

    def __init__(
        self,
        transport: Optional[httpx.BaseTransport] = None,
        *,
        retry_count: int = 0,
        rate_limiter: Optional[TokenSource] = None,
        cache: Optional[Cache] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        if retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {retry_count}")
        self._transport = transport if transport is not None else httpx.HTTPTransport()
        self._retry_count = retry_count
        self._rate_limiter = rate_limiter
        self._cache: Cache = cache if cache is not None else NoopCache()
        self._user_agent = user_agent or None

    @classmethod
    def from_config(
        cls,
        config: TransportConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> CachingTransport:
        """Build a transport from a resolved :class:`~cachewire.models.TransportConfig`.

        The cache backend comes from ``config.cache`` and a
        :class:`~cachewire.ratelimit.Ticker` is created when
        ``config.rate_limit`` is set.
        """
        rate_limiter = Ticker.per_second(config.rate_limit) if config.rate_limit else None
        return cls(
            transport,
            retry_count=config.retry_count,
            rate_limiter=rate_limiter,
            cache=create_cache(config),
            user_agent=config.user_agent,
        )

    @property
    def cache(self) -> Cache:
        return self._cache

    @property
    def retry_count(self) -> int:
        return self._retry_count

    def client(self, **kwargs: Any) -> httpx.Client:
        """Initialise the cache and return an :class:`httpx.Client` using this transport.

        Keyword arguments are forwarded to :class:`httpx.Client`.

        Raises:
            CacheInitError: If the cache storage cannot be prepared.
        """
        self._cache.init()
        return httpx.Client(transport=self, **kwargs)

    # ------------------------------------------------------------------ #
    # httpx.BaseTransport
    # ------------------------------------------------------------------ #

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        try:
            cached = self._cache.get(request)
        except CacheMiss:
            pass
        else:
            logger.debug("Cache hit: %s %s", request.method, request.url)
            return cached

        if self._user_agent:
            request.headers["User-Agent"] = self._user_agent

        if self._rate_limiter is not None:
            self._rate_limiter.take()

        response = self._exchange_with_retry(request)

        if response.status_code >= 400 or isinstance(self._cache, NoopCache):
            return response
        return self._store(request, response)

    def close(self) -> None:
        self._transport.close()
        close_cache = getattr(self._cache, "close", None)
        if callable(close_cache):
            close_cache()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _exchange_with_retry(self, request: httpx.Request) -> httpx.Response:
        """Perform the exchange, retrying on transport errors and statuses >= 400."""
        attempts = self._retry_count + 1
        for attempt in range(1, attempts + 1):
            try:
                response = self._transport.handle_request(request)
            except httpx.TransportError as exc:
                if attempt < attempts:
                    logger.debug(
                        "Exchange error for %s %s: %s (attempt %d/%d)",
                        request.method, request.url, exc, attempt, attempts,
                    )
                    continue
                raise

            if response.status_code >= 400 and attempt < attempts:
                logger.debug(
                    "HTTP %d for %s %s (attempt %d/%d)",
                    response.status_code, request.method, request.url, attempt, attempts,
                )
                response.close()
                continue

            return response

        raise AssertionError("unreachable")  # pragma: no cover

    def _store(self, request: httpx.Request, response: httpx.Response) -> httpx.Response:
        """Write *response* through to the cache and return an unread replacement.

        The raw body is drained once and the original stream closed. The
        cache gets a copy built from those bytes; the caller gets a fresh
        response streaming the same bytes, so the client can still wrap,
        read and close it (``.elapsed`` depends on that).
        """
        if response.is_stream_consumed:
            # Buffered before it got here (e.g. by a MockTransport); nothing to drain.
            self._write(request, response)
            return response

        try:
            raw = b"".join(response.iter_raw())
        finally:
            response.close()

        stored = httpx.Response(
            response.status_code,
            headers=response.headers,
            content=raw,
            request=request,
            extensions=response.extensions,
        )
        self._write(request, stored)
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            stream=httpx.ByteStream(raw),
            request=request,
            extensions=response.extensions,
        )

    def _write(self, request: httpx.Request, response: httpx.Response) -> None:
        try:
            self._cache.set(request, response)
        except CacheWriteError as exc:
            logger.warning("Cache write failed for %s %s: %s", request.method, request.url, exc)
