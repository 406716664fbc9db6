"""Filesystem-backed response cache.

Each successful response is stored in its own file under a root
directory, named by :func:`~cachewire.cache.keys.cache_key`. A record is the
best-effort percent-decoded request URL on the first line, followed by the
HTTP/1.1 wire dump of the response (see :mod:`cachewire.cache.wire`)::

    http://example.com/søk?q=a b
    HTTP/1.1 200 OK
    Content-Type: text/html
    Content-Length: 5

    hello

The URL line is only there for people browsing the cache directory;
lookups rely on the file name alone.

Records are written with a temp-file-then-rename so readers never see a
partial file. Two writers racing on the same key still resolve to last
writer wins. Nothing is ever expired or evicted; delete files out-of-band
to invalidate them.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

import httpx

from cachewire.cache.keys import cache_key
from cachewire.cache.wire import dump_response, load_response
from cachewire.config import atomic_write
from cachewire.exceptions import CacheDecodeError, CacheInitError, CacheMiss, CacheWriteError


@dataclass
class CacheRecordInfo:
    """What :meth:`FileCache.describe` reports about a stored record."""

    key: str
    path: Path
    url: str
    status_line: str
    size: int


def _display_url(url: str) -> str:
    """Percent-decode *url* for the record header, falling back to the raw form."""
    try:
        decoded = unquote(url, errors="strict")
    except UnicodeDecodeError:
        return url
    if "\n" in decoded or "\r" in decoded:
        return url
    return decoded


class FileCache:
    """Cache storing one file per request under *root*.

    Args:
        root: Directory holding the records. Created by :meth:`init`.

    Example::

        cache = FileCache("~/.cache/my-crawler")
        transport = CachingTransport(cache=cache, retry_count=2)
        with transport.client() as client:   # client() calls cache.init()
            client.get("https://example.com/")
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()

    def __repr__(self) -> str:
        return f"FileCache(root={str(self.root)!r})"

    def key(self, request: httpx.Request) -> str:
        return cache_key(request)

    def path(self, request: httpx.Request) -> Path:
        """Return the file a record for *request* lives in."""
        return self.root / self.key(request)

    def init(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheInitError(f"Cannot create cache directory {self.root}: {exc}") from exc

    def get(self, request: httpx.Request) -> httpx.Response:
        path = self.path(request)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise CacheMiss(f"No cache record at {path}") from exc
        _, sep, raw = data.partition(b"\n")
        if not sep:
            raise CacheDecodeError(f"Cache record {path} has no URL line")
        return load_response(raw, request)

    def set(self, request: httpx.Request, response: httpx.Response) -> None:
        path = self.path(request)
        try:
            raw = dump_response(response, request)
        except (httpx.StreamError, httpx.DecodingError, UnicodeEncodeError) as exc:
            raise CacheWriteError(f"Cannot serialise response for {request.url}: {exc}") from exc
        header = _display_url(str(request.url)).encode("utf-8") + b"\n"
        try:
            atomic_write(path, header + raw)
        except OSError as exc:
            raise CacheWriteError(f"Cannot write cache record {path}: {exc}") from exc

    def describe(self, request: httpx.Request) -> CacheRecordInfo:
        """Summarise the stored record for *request* without parsing its body.

        Raises:
            CacheMiss: If no record exists.
        """
        path = self.path(request)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise CacheMiss(f"No cache record at {path}") from exc
        url, _, raw = data.partition(b"\n")
        status_line = raw.split(b"\r\n", 1)[0]
        return CacheRecordInfo(
            key=path.name,
            path=path,
            url=url.decode("utf-8", errors="replace"),
            status_line=status_line.decode("latin-1"),
            size=len(data),
        )
