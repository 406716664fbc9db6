"""Fetch command -- one request through the caching transport.

``cachewire fetch`` resolves the effective
:class:`~cachewire.models.TransportConfig` (flags > env > project file >
global file), builds a :class:`~cachewire.transport.CachingTransport` from
it and performs a single request. The body goes to stdout, the status line
(and headers with ``--include``) to stderr.
"""

from __future__ import annotations

from typing import Optional

import httpx
import typer

from cachewire.exceptions import CachewireError
from cachewire.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)
from cachewire.models import CacheBackend
from cachewire.output import debug, error, format_response, info, print_data


def parse_headers(values: Optional[list[str]]) -> dict[str, str]:
    """Turn ``["Name: value", ...]`` into a header dict.

    Raises:
        typer.BadParameter: If an entry has no colon or an empty name.
    """
    headers: dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected 'Name: value', got {raw!r}", param_hint="--header")
        headers[name.strip()] = value.strip()
    return headers


def status_exit_code(status_code: int) -> int:
    """Map a final HTTP status to a process exit code (0 below 400)."""
    if status_code == 404:
        return EXIT_NOT_FOUND
    if status_code >= 400:
        return EXIT_SERVER_ERROR
    return 0


def _print_body(response: httpx.Response) -> None:
    if not response.content:
        return
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            format_response(response.json(), content_type)
            return
        except ValueError:
            pass
    print_data(response.text)


def fetch_command(
    url: str = typer.Argument(help="Absolute URL to request."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Extra request header 'Name: value' (repeatable)."
    ),
    retries: Optional[int] = typer.Option(
        None, "--retries", "-r", min=0, help="Extra attempts after a failed exchange."
    ),
    user_agent: Optional[str] = typer.Option(
        None, "--user-agent", "-A", help="Override the User-Agent header."
    ),
    rate_limit: Optional[float] = typer.Option(
        None, "--rate-limit", help="Maximum exchanges per second."
    ),
    cache_dir: Optional[str] = typer.Option(
        None, "--cache-dir", help="Cache root directory."
    ),
    backend: Optional[CacheBackend] = typer.Option(
        None, "--backend", help="Cache backend: none, file, diskcache."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Bypass the cache entirely."
    ),
    include: bool = typer.Option(
        False, "--include", "-i", help="Print response headers to stderr."
    ),
) -> None:
    """Request URL, serving it from the cache when a record exists.

    Successful responses (status below 400) are written to the cache.
    Statuses of 400 and above are retried up to --retries times and then
    printed like any other response, with a non-zero exit code.

    Example::

        cachewire fetch https://example.com/a?x=1 --retries 2
        cachewire fetch https://api.example.com/items -H "Accept: application/json"
    """
    from cachewire.config import default_cache_root, resolve_config
    from cachewire.transport import CachingTransport

    headers = parse_headers(header)
    if no_cache:
        backend = CacheBackend.NONE
    try:
        config = resolve_config(
            {
                "retry_count": retries,
                "user_agent": user_agent,
                "rate_limit": rate_limit,
                "cache.directory": cache_dir,
                "cache.backend": backend.value if backend else None,
            }
        )
        if config.cache.backend == CacheBackend.NONE:
            debug("Cache disabled")
        else:
            debug(f"Cache: {config.cache.backend.value} at {default_cache_root(config)}")
        debug(f"Retries: {config.retry_count}, rate limit: {config.rate_limit or 'off'}")
        transport = CachingTransport.from_config(config)
        with transport.client(timeout=config.timeout, follow_redirects=True) as client:
            response = client.request(method.upper(), url, headers=headers)
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
        error(f"Invalid URL {url!r}: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    except httpx.TransportError as exc:
        error(f"Request failed: {exc}")
        raise typer.Exit(code=EXIT_CONNECTION_ERROR) from None
    except CachewireError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    info(f"HTTP {response.status_code} {response.reason_phrase}")
    if include:
        for name, value in response.headers.items():
            info(f"{name}: {value}")
    _print_body(response)

    code = status_exit_code(response.status_code)
    if code:
        raise typer.Exit(code=code)
