"""Blocking token sources used to throttle outbound exchanges.

:class:`~cachewire.transport.CachingTransport` only needs something with a
blocking ``take()`` method; it waits for exactly one token before the first
attempt of every exchange that misses the cache. No timeout or
cancellation is offered at this layer.

:class:`Ticker` is the stock implementation: a :mod:`pyrate_limiter`
limiter admitting one exchange per interval.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from pyrate_limiter import Duration, Limiter, Rate

logger = logging.getLogger(__name__)

# Wait up to about a year before the limiter gives up.
_BLOCKING_MAX_DELAY_MS = int(Duration.DAY) * 365
_BUFFER_MS = 5


@runtime_checkable
class TokenSource(Protocol):
    """Anything that can block the caller until one permission unit is free."""

    def take(self) -> None:
        """Block until a token is available, then consume it."""
        ...


class Ticker:
    """Token source admitting one token per *interval* seconds.

    Backed by a sliding-window :class:`pyrate_limiter.Limiter` holding a
    single ``Rate(1, interval)``. The first :meth:`take` returns at once;
    each later one waits until an interval has passed since the previous
    token. Idle time never banks more than that one token, so a burst
    after a pause is limited to a single immediate exchange.

    Safe to share between threads; the limiter serialises acquisitions.

    Args:
        interval: Seconds between tokens. Must be positive. Resolution is
            one millisecond.

    Example::

        limiter = Ticker.per_second(2)   # at most two exchanges per second
        transport = CachingTransport(rate_limiter=limiter)
    """

    def __init__(self, interval: float, name: str = "cachewire") -> None:
        if interval <= 0:
            raise ValueError(f"Ticker interval must be positive, got {interval!r}")
        self._interval = interval
        self._name = name
        self._limiter = Limiter(
            [Rate(1, max(1, round(interval * 1000)))],
            raise_when_fail=False,
            max_delay=_BLOCKING_MAX_DELAY_MS,
            retry_until_max_delay=True,
            buffer_ms=_BUFFER_MS,
        )

    @classmethod
    def per_second(cls, rate: float) -> Ticker:
        """Build a ticker admitting *rate* tokens per second."""
        if rate <= 0:
            raise ValueError(f"Rate must be positive, got {rate!r}")
        return cls(1.0 / rate)

    @property
    def interval(self) -> float:
        return self._interval

    def take(self) -> None:
        acquired = self._limiter.try_acquire(self._name)
        if acquired is not True:
            # Only reachable if the limiter stops blocking, e.g. when handed an async bucket.
            raise RuntimeError(f"Rate limiter {self._name!r} returned without a token")
        logger.debug("Rate limit token taken (interval %.3fs)", self._interval)
