"""PriceCache: stale-while-revalidate cache for the price feed.

The price upstream is rate limited, so its payload is cached for a TTL and
refreshed by at most one request at a time:

    - Fresh (age <= ttl): served from memory, no network call
    - Stale, nothing in flight: a refresh task is started
    - Refreshing: callers attach to the running task instead of issuing
      their own request
    - Refresh failed: the previous payload is served (fetched_at is kept, so
      the next call tries again); with no previous payload the error
      propagates to every waiter

.. code-block:: python

    >>> cache = PriceCache(UpstreamFetcher(), PRICE_URL, ttl=60.0)
    >>> data = await cache.get()
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from .UpstreamFetcher import UpstreamError

if TYPE_CHECKING:
    from .UpstreamFetcher import UpstreamFetcher

logger = logging.getLogger(__name__)


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Waiters may all have been cancelled before the refresh failed
    if not task.cancelled():
        task.exception()


class PriceCache:
    """Single-entry TTL cache with single-flight refresh.

    :cvar DEFAULT_TTL: Default freshness window in seconds.
    :ivar fetcher: Fetcher used for refreshes.
    :ivar url: Price feed URL.
    :ivar ttl: Freshness window in seconds.
    """

    DEFAULT_TTL = 60.0

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        url: str,
        ttl: float = DEFAULT_TTL,
    ) -> None:
        """Initialize the cache.

        :param fetcher: Fetcher used to reach the price feed.
        :param url: Price feed URL.
        :param ttl: Freshness window in seconds (default: 60).
        :raises ValueError: If ttl is negative.
        """
        if ttl < 0:
            raise ValueError("ttl must not be negative")

        self.fetcher = fetcher
        self.url = url
        self.ttl = ttl

        self._value: Any = None
        self._fetched_at: float = 0.0
        self._in_flight: asyncio.Task[Any] | None = None

    @property
    def has_value(self) -> bool:
        """Check if a payload has ever been stored."""
        return self._value is not None

    @property
    def is_refreshing(self) -> bool:
        """Check if a refresh request is currently in flight."""
        return self._in_flight is not None

    def get_age(self) -> float | None:
        """Get the age of the stored payload in seconds.

        :returns: Age in seconds, or None if nothing is stored.
        """
        if not self.has_value:
            return None
        return time.time() - self._fetched_at

    def is_stale(self) -> bool:
        """Check if the stored payload is missing or older than the TTL."""
        if not self.has_value:
            return True
        return time.time() - self._fetched_at > self.ttl

    async def get(self) -> Any:
        """Return the price payload, refreshing it when stale.

        :returns: Price feed payload (fresh, or the last good one on failure).
        :raises UpstreamError: If the refresh fails and nothing is cached.
        """
        if not self.is_stale():
            logger.debug("Serving cached price data (age %.1fs)", self.get_age())
            return self._value

        if self._in_flight is None:
            # Marker is set before the first await
            self._in_flight = asyncio.ensure_future(self._refresh())
            self._in_flight.add_done_callback(_consume_exception)

        # Shielded: a cancelled caller must not cancel the shared request
        return await asyncio.shield(self._in_flight)

    async def _refresh(self) -> Any:
        """Fetch a new payload and update the entry.

        :returns: New payload, or the previous one if the fetch failed.
        :raises UpstreamError: If the fetch failed and nothing is cached.
        """
        try:
            logger.debug("Refreshing price data from %s", self.url)
            fresh = await self.fetcher.fetch(self.url)
        except UpstreamError as e:
            if self.has_value:
                logger.warning(f"Price fetch error (serving cached): {e}")
                return self._value
            raise
        else:
            self._value = fresh
            self._fetched_at = time.time()
            return fresh
        finally:
            self._in_flight = None
