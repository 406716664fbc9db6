"""Cache key derivation.

A key is a readable, filesystem-safe prefix built from the method, host and
path, followed by the SHA-1 of the method and the full URL. Only the digest
discriminates between requests: two URLs differing only in their query
string share the prefix but never the digest.
"""

from __future__ import annotations

import hashlib
import re

import httpx

PREFIX_LENGTH = 40

_INVALID_FILENAME_CHARS = re.compile(r"[^-_0-9a-zA-Z]+")


def cache_key(request: httpx.Request) -> str:
    """Return the cache key for *request*, a pure function of its method and URL.

    Example::

        cache_key(httpx.Request("GET", "http://example.com/a?x=1"))
        # 'GET_example_com__a' followed by 40 hex digits
    """
    url = request.url
    prefix = f"{request.method}_{url.netloc.decode('ascii')}_{url.path}"
    prefix = _INVALID_FILENAME_CHARS.sub("_", prefix)[:PREFIX_LENGTH]
    digest = hashlib.sha1(f"{request.method}::{url}".encode("utf-8")).hexdigest()
    return prefix + digest
