"""Tests for CachingTransport: cache lookup, retry, throttling, write-through."""

from __future__ import annotations

import gzip
import logging
from datetime import timedelta
from pathlib import Path

import httpx
import pytest

from cachewire.cache import DiskCache, FileCache, NoopCache
from cachewire.exceptions import CacheDecodeError, CacheMiss, CacheWriteError
from cachewire.models import CacheBackend, CacheConfig, TransportConfig
from cachewire.ratelimit import Ticker
from cachewire.transport import CachingTransport


URL = "http://example.com/a?x=1"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class CountingLimiter:
    """Token source that never blocks and counts how often it was asked."""

    def __init__(self) -> None:
        self.taken = 0

    def take(self) -> None:
        self.taken += 1


class BrokenWriteCache(NoopCache):
    """Cache that always misses and fails every write."""

    def __init__(self) -> None:
        self.writes = 0

    def set(self, request: httpx.Request, response: httpx.Response) -> None:
        self.writes += 1
        raise CacheWriteError("disk full")


class RecordingCache(NoopCache):
    """Cache that always misses and remembers what it was asked to store."""

    def __init__(self) -> None:
        self.stored: list[httpx.Response] = []

    def set(self, request: httpx.Request, response: httpx.Response) -> None:
        self.stored.append(response)


@pytest.fixture()
def file_cache(tmp_path: Path) -> FileCache:
    cache = FileCache(tmp_path / "responses")
    cache.init()
    return cache


def _get(transport: CachingTransport, url: str = URL, **kwargs) -> httpx.Response:
    response = transport.handle_request(httpx.Request("GET", url, **kwargs))
    response.read()
    return response


# ---------------------------------------------------------------------------
# Cache lookup and write-through
# ---------------------------------------------------------------------------


class TestCaching:
    def test_miss_then_hit(self, scripted, file_cache: FileCache) -> None:
        inner = scripted([200])
        transport = CachingTransport(inner, cache=file_cache)

        first = _get(transport)
        second = _get(transport)

        assert inner.calls == 1
        assert first.content == second.content == b"payload"
        assert second.status_code == 200
        assert second.headers["content-type"] == "text/plain"

    def test_hit_skips_limiter_and_user_agent(self, scripted, file_cache: FileCache) -> None:
        request = httpx.Request("GET", URL)
        file_cache.set(request, httpx.Response(200, content=b"cached", request=request))
        inner = scripted([200])
        limiter = CountingLimiter()
        transport = CachingTransport(
            inner, cache=file_cache, rate_limiter=limiter, user_agent="bot/1.0"
        )

        hit_request = httpx.Request("GET", URL, headers={"User-Agent": "original"})
        response = transport.handle_request(hit_request)

        assert response.read() == b"cached"
        assert inner.calls == 0
        assert limiter.taken == 0
        assert hit_request.headers["User-Agent"] == "original"

    def test_different_query_is_a_miss(self, scripted, file_cache: FileCache) -> None:
        inner = scripted([200])
        transport = CachingTransport(inner, cache=file_cache)
        _get(transport, "http://example.com/a?x=1")
        _get(transport, "http://example.com/a?x=2")
        assert inner.calls == 2

    def test_decode_error_falls_through(self, scripted, file_cache: FileCache) -> None:
        request = httpx.Request("GET", URL)
        file_cache.path(request).write_bytes(b"http://example.com/a?x=1\ngarbage")
        with pytest.raises(CacheDecodeError):
            file_cache.get(request)

        inner = scripted([200])
        transport = CachingTransport(inner, cache=file_cache)
        assert _get(transport).content == b"payload"
        assert inner.calls == 1
        # The fresh response replaced the corrupt record.
        assert file_cache.get(request).read() == b"payload"

    def test_write_failure_is_logged_not_raised(
        self, scripted, caplog: pytest.LogCaptureFixture
    ) -> None:
        cache = BrokenWriteCache()
        transport = CachingTransport(scripted([200]), cache=cache)

        with caplog.at_level(logging.WARNING, logger="cachewire.transport"):
            response = _get(transport)

        assert response.status_code == 200
        assert response.content == b"payload"
        assert cache.writes == 1
        assert "Cache write failed" in caplog.text
        assert "disk full" in caplog.text

    def test_stored_response_is_buffered(self, scripted) -> None:
        cache = RecordingCache()
        transport = CachingTransport(scripted([200]), cache=cache)
        _get(transport)
        assert len(cache.stored) == 1
        assert cache.stored[0].content == b"payload"

    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    def test_error_status_not_stored(self, scripted, status: int) -> None:
        cache = RecordingCache()
        transport = CachingTransport(scripted([status]), cache=cache)
        assert _get(transport).status_code == status
        assert cache.stored == []

    @pytest.mark.parametrize("status", [200, 201, 204, 301, 399])
    def test_success_statuses_stored(self, scripted, status: int) -> None:
        cache = RecordingCache()
        transport = CachingTransport(
            scripted([httpx.Response(status)]), cache=cache
        )
        transport.handle_request(httpx.Request("GET", URL))
        assert len(cache.stored) == 1

    def test_default_cache_stores_nothing(self, scripted) -> None:
        inner = scripted([200])
        transport = CachingTransport(inner)
        _get(transport)
        _get(transport)
        assert inner.calls == 2


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


class TestRetry:
    @pytest.mark.parametrize("retry_count", [0, 1, 3])
    def test_transport_error_exhausts_attempts(self, scripted, retry_count: int) -> None:
        error = httpx.ConnectError("connection refused")
        inner = scripted([error])
        transport = CachingTransport(inner, retry_count=retry_count)

        with pytest.raises(httpx.ConnectError) as exc_info:
            transport.handle_request(httpx.Request("GET", URL))

        assert exc_info.value is error
        assert inner.calls == retry_count + 1

    def test_last_error_is_the_one_raised(self, scripted) -> None:
        first = httpx.ConnectError("first")
        last = httpx.ReadTimeout("last")
        transport = CachingTransport(scripted([first, last]), retry_count=1)
        with pytest.raises(httpx.ReadTimeout) as exc_info:
            transport.handle_request(httpx.Request("GET", URL))
        assert exc_info.value is last

    def test_error_statuses_then_success(self, scripted, file_cache: FileCache) -> None:
        inner = scripted([500, 500, 200])
        transport = CachingTransport(inner, retry_count=2, cache=file_cache)

        response = _get(transport)

        assert response.status_code == 200
        assert response.headers["x-attempt"] == "3"
        assert inner.calls == 3
        assert file_cache.get(httpx.Request("GET", URL)).status_code == 200

    def test_exhausted_error_status_is_returned(self, scripted, file_cache: FileCache) -> None:
        inner = scripted([503])
        transport = CachingTransport(inner, retry_count=2, cache=file_cache)

        response = _get(transport)

        assert response.status_code == 503
        assert response.headers["x-attempt"] == "3"
        assert inner.calls == 3
        assert list(file_cache.root.iterdir()) == []

    def test_zero_retries_means_one_attempt(self, scripted) -> None:
        inner = scripted([500, 200])
        transport = CachingTransport(inner, retry_count=0)
        assert _get(transport).status_code == 500
        assert inner.calls == 1

    def test_success_stops_retrying(self, scripted) -> None:
        inner = scripted([200, 500])
        transport = CachingTransport(inner, retry_count=5)
        assert _get(transport).status_code == 200
        assert inner.calls == 1

    def test_non_transport_error_not_retried(self, scripted) -> None:
        inner = scripted([RuntimeError("bug")])
        transport = CachingTransport(inner, retry_count=3)
        with pytest.raises(RuntimeError):
            transport.handle_request(httpx.Request("GET", URL))
        assert inner.calls == 1

    def test_discarded_responses_are_closed(self, scripted) -> None:
        failed = httpx.Response(500, content=b"boom")
        transport = CachingTransport(scripted([failed, 200]), retry_count=1)
        assert _get(transport).status_code == 200
        assert failed.is_closed

    def test_mixed_failures_then_cached(self, scripted, file_cache: FileCache) -> None:
        """Connection error, 503, then 200; a second fetch makes no exchange."""
        inner = scripted([httpx.ConnectError("refused"), 503, 200])
        limiter = CountingLimiter()
        transport = CachingTransport(
            inner, retry_count=2, cache=file_cache, rate_limiter=limiter
        )

        assert _get(transport).status_code == 200
        assert inner.calls == 3
        assert limiter.taken == 1

        assert _get(transport).status_code == 200
        assert inner.calls == 3
        assert limiter.taken == 1


# ---------------------------------------------------------------------------
# Request decoration and throttling
# ---------------------------------------------------------------------------


class TestRequestDecoration:
    def test_user_agent_override(self, scripted) -> None:
        inner = scripted([200])
        transport = CachingTransport(inner, user_agent="crawler/1.0")
        _get(transport, headers={"User-Agent": "python-httpx"})
        assert inner.requests[0].headers["User-Agent"] == "crawler/1.0"

    def test_user_agent_untouched_without_override(self, scripted) -> None:
        inner = scripted([200])
        transport = CachingTransport(inner)
        _get(transport, headers={"User-Agent": "mine/2"})
        assert inner.requests[0].headers["User-Agent"] == "mine/2"

    def test_user_agent_kept_across_retries(self, scripted) -> None:
        inner = scripted([500, 200])
        transport = CachingTransport(inner, retry_count=1, user_agent="crawler/1.0")
        _get(transport)
        assert [r.headers["User-Agent"] for r in inner.requests] == ["crawler/1.0"] * 2

    def test_one_token_per_miss(self, scripted) -> None:
        limiter = CountingLimiter()
        transport = CachingTransport(scripted([500]), retry_count=3, rate_limiter=limiter)
        _get(transport)
        _get(transport)
        assert limiter.taken == 2

    def test_token_taken_before_exchange(self, scripted) -> None:
        order: list[str] = []

        class OrderLimiter:
            def take(self) -> None:
                order.append("take")

        def handler(request: httpx.Request) -> httpx.Response:
            order.append("exchange")
            return httpx.Response(200)

        transport = CachingTransport(httpx.MockTransport(handler), rate_limiter=OrderLimiter())
        transport.handle_request(httpx.Request("GET", URL))
        assert order == ["take", "exchange"]


# ---------------------------------------------------------------------------
# Construction and lifecycle
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_negative_retry_count(self) -> None:
        with pytest.raises(ValueError):
            CachingTransport(httpx.MockTransport(lambda r: httpx.Response(200)), retry_count=-1)

    def test_defaults(self) -> None:
        transport = CachingTransport()
        try:
            assert isinstance(transport.cache, NoopCache)
            assert transport.retry_count == 0
        finally:
            transport.close()

    def test_from_config(self, tmp_path: Path) -> None:
        config = TransportConfig(
            retry_count=2,
            user_agent="bot/1",
            rate_limit=4,
            cache=CacheConfig(backend=CacheBackend.FILE, directory=str(tmp_path / "c")),
        )
        transport = CachingTransport.from_config(config, httpx.MockTransport(lambda r: httpx.Response(200)))
        assert transport.retry_count == 2
        assert isinstance(transport.cache, FileCache)
        assert transport.cache.root == tmp_path / "c"
        assert isinstance(transport._rate_limiter, Ticker)
        assert transport._rate_limiter.interval == pytest.approx(0.25)
        assert transport._user_agent == "bot/1"

    def test_from_config_diskcache(self, tmp_path: Path) -> None:
        config = TransportConfig(
            cache=CacheConfig(backend=CacheBackend.DISKCACHE, directory=str(tmp_path / "d")),
        )
        transport = CachingTransport.from_config(config, httpx.MockTransport(lambda r: httpx.Response(200)))
        assert isinstance(transport.cache, DiskCache)
        assert transport._rate_limiter is None

    def test_from_config_no_cache(self) -> None:
        config = TransportConfig(cache=CacheConfig(backend=CacheBackend.NONE))
        transport = CachingTransport.from_config(config, httpx.MockTransport(lambda r: httpx.Response(200)))
        assert isinstance(transport.cache, NoopCache)

    def test_client_initialises_cache(self, scripted, tmp_path: Path) -> None:
        root = tmp_path / "fresh" / "responses"
        inner = scripted([200])
        transport = CachingTransport(inner, cache=FileCache(root))

        with transport.client() as client:
            assert root.is_dir()
            assert client.get(URL).text == "payload"
            assert client.get(URL).text == "payload"

        assert inner.calls == 1
        assert inner.closed

    def test_client_surfaces_transport_errors(self, scripted) -> None:
        transport = CachingTransport(scripted([httpx.ConnectError("refused")]), retry_count=1)
        with transport.client() as client:
            with pytest.raises(httpx.ConnectError):
                client.get(URL)

    def test_close_releases_diskcache(self, scripted, tmp_path: Path) -> None:
        cache = DiskCache(tmp_path / "d")
        inner = scripted([200])
        transport = CachingTransport(inner, cache=cache)
        with transport.client() as client:
            client.get(URL)
        with pytest.raises(CacheMiss, match="not initialised"):
            cache.get(httpx.Request("GET", URL))
        assert inner.closed


# ---------------------------------------------------------------------------
# Responses handed to httpx.Client
# ---------------------------------------------------------------------------


def _streaming(body: bytes = b"fresh", **headers: str) -> httpx.MockTransport:
    """Exchange double answering with unread streams, like a real transport."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers=headers, stream=httpx.ByteStream(body))

    return httpx.MockTransport(handler)


class TestClientResponses:
    def test_elapsed_on_miss_and_hit(self, tmp_path: Path) -> None:
        transport = CachingTransport(_streaming(), cache=FileCache(tmp_path / "responses"))
        with transport.client() as client:
            miss = client.get(URL)
            hit = client.get(URL)

        assert miss.text == hit.text == "fresh"
        assert miss.elapsed >= timedelta(0)
        assert hit.elapsed >= timedelta(0)

    def test_elapsed_without_cache(self) -> None:
        with CachingTransport(_streaming()).client() as client:
            response = client.get(URL)
        assert response.text == "fresh"
        assert response.elapsed >= timedelta(0)

    def test_stream_without_cache_is_not_buffered(self) -> None:
        with CachingTransport(_streaming()).client() as client:
            with client.stream("GET", URL) as response:
                assert not response.is_stream_consumed
                assert response.read() == b"fresh"

    def test_miss_returns_unread_copy(self) -> None:
        cache = RecordingCache()
        transport = CachingTransport(_streaming(), cache=cache)

        response = transport.handle_request(httpx.Request("GET", URL))

        assert not response.is_stream_consumed
        assert response.read() == b"fresh"
        assert cache.stored[0].content == b"fresh"

    def test_encoded_body_decoded_for_caller_and_cache(self, tmp_path: Path) -> None:
        cache = FileCache(tmp_path / "responses")
        transport = CachingTransport(
            _streaming(gzip.compress(b"hello"), **{"Content-Encoding": "gzip"}), cache=cache
        )
        with transport.client() as client:
            response = client.get(URL)

        assert response.headers["content-encoding"] == "gzip"
        assert response.text == "hello"
        stored = cache.get(httpx.Request("GET", URL))
        assert stored.read() == b"hello"
        assert "content-encoding" not in stored.headers
