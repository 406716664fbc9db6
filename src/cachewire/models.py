"""Pydantic models describing cachewire configuration.

This is the single source of truth for option shapes. The models are
serialised as JSON in the global config file (``config.json`` in the
config directory) and in an optional project-local ``cachewire.json``, and
are merged by :func:`~cachewire.config.resolve_config`.

:class:`TransportConfig` is what
:meth:`~cachewire.transport.CachingTransport.from_config` consumes.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, Field


class CacheBackend(str, enum.Enum):
    """Storage backend used for cached responses."""

    NONE = "none"
    FILE = "file"
    DISKCACHE = "diskcache"


class CacheConfig(BaseModel):
    """Response cache settings embedded in :class:`TransportConfig`."""

    backend: CacheBackend = Field(
        default=CacheBackend.FILE,
        description="Cache backend: none, file, diskcache",
    )
    directory: Optional[str] = Field(
        default=None,
        description="Cache root directory (default: <cache dir>/responses)",
    )


class TransportConfig(BaseModel):
    """Settings for :class:`~cachewire.transport.CachingTransport`.

    ``retry_count`` is the number of *additional* attempts after the first
    one, so the default of 0 means a single exchange. ``rate_limit`` is the
    number of exchanges released per second by a
    :class:`~cachewire.ratelimit.Ticker`; ``None`` disables throttling.

    Example::

        TransportConfig(
            retry_count=2,
            user_agent="my-crawler/1.0",
            rate_limit=0.5,
            cache=CacheConfig(backend="file", directory="/tmp/http-cache"),
        )
    """

    retry_count: int = Field(
        default=0, ge=0, description="Extra attempts after a failed exchange"
    )
    user_agent: Optional[str] = Field(
        default=None, description="User-Agent header override"
    )
    rate_limit: Optional[float] = Field(
        default=None, gt=0, description="Exchanges per second (unset: unlimited)"
    )
    timeout: float = Field(
        default=30.0, gt=0, description="Request timeout in seconds for built clients"
    )
    cache: CacheConfig = Field(default_factory=CacheConfig)
