"""Cache commands -- compute keys and inspect stored records.

Provides the ``cachewire cache`` sub-command group. Both commands work
offline: they resolve the configured cache backend and look at what is
stored for a method and URL without touching the network.
"""

from __future__ import annotations

from typing import Optional

import httpx
import typer

from cachewire.exit_codes import EXIT_CACHE_MISS, EXIT_INVALID_USAGE
from cachewire.models import CacheBackend
from cachewire.output import error, info, print_data, print_table, suggest


cache_app = typer.Typer(no_args_is_help=True)


def _build_request(method: str, url: str) -> httpx.Request:
    try:
        return httpx.Request(method.upper(), url)
    except httpx.InvalidURL as exc:
        error(f"Invalid URL {url!r}: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None


@cache_app.command("key")
def cache_key_command(
    url: str = typer.Argument(help="Absolute URL of the request."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="Cache root directory."),
) -> None:
    """Print the cache key for METHOD URL, and its file path for the file backend.

    Example::

        cachewire cache key "https://example.com/a?x=1"
    """
    from cachewire.cache import FileCache, cache_key, create_cache
    from cachewire.config import resolve_config

    request = _build_request(method, url)
    print_data(cache_key(request))

    config = resolve_config({"cache.directory": cache_dir})
    cache = create_cache(config)
    if isinstance(cache, FileCache):
        info(f"Path: {cache.path(request)}")


@cache_app.command("show")
def cache_show_command(
    url: str = typer.Argument(help="Absolute URL of the request."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="Cache root directory."),
    backend: Optional[CacheBackend] = typer.Option(
        None, "--backend", help="Cache backend: file, diskcache."
    ),
) -> None:
    """Summarise the cached response for METHOD URL.

    Exits with code 3 when nothing usable is stored.

    Example::

        cachewire cache show "https://example.com/a?x=1"
        cachewire cache show https://example.com/ --backend diskcache --json
    """
    from cachewire.cache import FileCache, NoopCache, cache_key, create_cache
    from cachewire.config import resolve_config
    from cachewire.exceptions import CacheDecodeError, CacheMiss

    request = _build_request(method, url)
    config = resolve_config(
        {"cache.directory": cache_dir, "cache.backend": backend.value if backend else None}
    )
    cache = create_cache(config)
    if isinstance(cache, NoopCache):
        error("Caching is disabled (cache backend is 'none').")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        cache.init()
        response = cache.get(request)
        body = response.read()
    except CacheDecodeError as exc:
        error(f"Cached record is unreadable: {exc}")
        raise typer.Exit(code=EXIT_CACHE_MISS) from None
    except CacheMiss:
        error(f"No cached response for {request.method} {request.url}")
        suggest(f"Run: cachewire fetch {url}")
        raise typer.Exit(code=EXIT_CACHE_MISS) from None
    finally:
        close = getattr(cache, "close", None)
        if callable(close):
            close()

    rows = [
        ["key", cache_key(request)],
        ["status", f"{response.status_code} {response.reason_phrase}"],
        ["content-type", response.headers.get("content-type", "")],
        ["body bytes", str(len(body))],
    ]
    if isinstance(cache, FileCache):
        record = cache.describe(request)
        rows.append(["url", record.url])
        rows.append(["path", str(record.path)])
    print_table(["field", "value"], rows, title="Cached response")
