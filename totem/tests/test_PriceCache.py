"""Unit tests for PriceCache."""

import asyncio
import gc
from unittest.mock import patch

import pytest

from totem.src.PriceCache import PriceCache
from totem.src.UpstreamFetcher import UpstreamError

PRICE_URL = "https://prices.test/markets"


class FakeFetcher:
    """Fetcher returning queued results (values or exceptions) in order.

    The last result is repeated once the queue is down to one item.
    """

    def __init__(self, *results) -> None:
        self.results = list(results)
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None

    async def fetch(self, url: str, **kwargs):
        self.calls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def upstream_error() -> UpstreamError:
    return UpstreamError(PRICE_URL, 429)


class TestPriceCacheInit:
    """Test PriceCache initialization."""

    def test_default_ttl(self) -> None:
        """Default TTL should be 60 seconds."""
        cache = PriceCache(FakeFetcher([]), PRICE_URL)
        assert cache.ttl == 60.0

    def test_negative_ttl(self) -> None:
        """Negative TTL should raise ValueError."""
        with pytest.raises(ValueError, match="ttl must not be negative"):
            PriceCache(FakeFetcher([]), PRICE_URL, ttl=-1)

    def test_initial_state(self) -> None:
        """A new cache should be empty and stale."""
        cache = PriceCache(FakeFetcher([]), PRICE_URL)
        assert not cache.has_value
        assert cache.is_stale()
        assert cache.get_age() is None
        assert not cache.is_refreshing


class TestPriceCacheFreshness:
    """Test TTL behavior."""

    @patch("totem.src.PriceCache.time.time")
    def test_hit_within_ttl_makes_one_request(self, mock_time) -> None:
        """Two calls within the TTL should issue exactly one request."""
        fetcher = FakeFetcher([{"price": 1}], [{"price": 2}])
        cache = PriceCache(fetcher, PRICE_URL, ttl=60.0)

        mock_time.return_value = 1000.0
        first = asyncio.run(cache.get())
        mock_time.return_value = 1060.0  # Exactly at the TTL boundary
        second = asyncio.run(cache.get())

        assert first == second == [{"price": 1}]
        assert fetcher.calls == [PRICE_URL]

    @patch("totem.src.PriceCache.time.time")
    def test_refresh_after_ttl(self, mock_time) -> None:
        """A call past the TTL should fetch and store a new payload."""
        fetcher = FakeFetcher([{"price": 1}], [{"price": 2}])
        cache = PriceCache(fetcher, PRICE_URL, ttl=60.0)

        mock_time.return_value = 1000.0
        asyncio.run(cache.get())
        mock_time.return_value = 1061.0
        result = asyncio.run(cache.get())

        assert result == [{"price": 2}]
        assert len(fetcher.calls) == 2
        assert cache.get_age() == 0.0

    @patch("totem.src.PriceCache.time.time")
    def test_age_and_staleness(self, mock_time) -> None:
        """get_age and is_stale should follow the stored timestamp."""
        cache = PriceCache(FakeFetcher({"zcash": {}}), PRICE_URL, ttl=10.0)

        mock_time.return_value = 500.0
        asyncio.run(cache.get())
        mock_time.return_value = 505.0

        assert cache.get_age() == 5.0
        assert not cache.is_stale()

        mock_time.return_value = 511.0
        assert cache.is_stale()


class TestPriceCacheSingleFlight:
    """Test request coalescing."""

    def test_concurrent_callers_share_one_request(self) -> None:
        """N concurrent callers while stale should trigger one request."""
        fetcher = FakeFetcher([{"current_price": 30.0}])
        cache = PriceCache(fetcher, PRICE_URL)

        async def scenario():
            fetcher.gate = asyncio.Event()
            tasks = [asyncio.create_task(cache.get()) for _ in range(5)]
            await asyncio.sleep(0)
            assert cache.is_refreshing
            fetcher.gate.set()
            return await asyncio.gather(*tasks)

        results = asyncio.run(scenario())

        assert len(fetcher.calls) == 1
        assert all(r is results[0] for r in results)
        assert not cache.is_refreshing

    def test_first_failure_propagates_to_all_waiters(self) -> None:
        """With nothing cached, every waiter should see the failure."""
        fetcher = FakeFetcher(upstream_error())
        cache = PriceCache(fetcher, PRICE_URL)

        async def scenario():
            return await asyncio.gather(
                cache.get(), cache.get(), cache.get(), return_exceptions=True
            )

        results = asyncio.run(scenario())

        assert len(fetcher.calls) == 1
        assert all(isinstance(r, UpstreamError) for r in results)
        assert not cache.is_refreshing

    def test_cancelled_caller_does_not_cancel_refresh(self) -> None:
        """Cancelling one waiter should leave the shared request running."""
        fetcher = FakeFetcher([{"current_price": 30.0}])
        cache = PriceCache(fetcher, PRICE_URL)

        async def scenario():
            fetcher.gate = asyncio.Event()
            first = asyncio.create_task(cache.get())
            second = asyncio.create_task(cache.get())
            await asyncio.sleep(0)
            first.cancel()
            fetcher.gate.set()
            return await second, first

        result, first = asyncio.run(scenario())

        assert result == [{"current_price": 30.0}]
        assert first.cancelled()
        assert len(fetcher.calls) == 1
        assert cache.has_value

    def test_failure_after_all_waiters_cancelled_is_not_reported(self) -> None:
        """A failed refresh nobody awaits should not log an unretrieved exception."""
        fetcher = FakeFetcher(upstream_error())
        cache = PriceCache(fetcher, PRICE_URL)
        reports = []

        async def scenario():
            asyncio.get_running_loop().set_exception_handler(
                lambda loop, context: reports.append(context)
            )
            fetcher.gate = asyncio.Event()
            waiter = asyncio.create_task(cache.get())
            await asyncio.sleep(0)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter
            fetcher.gate.set()
            while cache.is_refreshing:
                await asyncio.sleep(0)
            await asyncio.sleep(0)
            gc.collect()

        asyncio.run(scenario())

        assert reports == []
        assert len(fetcher.calls) == 1
        assert not cache.has_value


class TestPriceCacheFailures:
    """Test stale fallback on refresh failure."""

    def test_first_failure_raises(self) -> None:
        """A failing first fetch should propagate the error."""
        cache = PriceCache(FakeFetcher(upstream_error()), PRICE_URL)

        with pytest.raises(UpstreamError, match="HTTP 429"):
            asyncio.run(cache.get())

        assert not cache.has_value

    @patch("totem.src.PriceCache.time.time")
    def test_failure_serves_previous_value(self, mock_time) -> None:
        """After a success, a failure should return the last good payload."""
        fetcher = FakeFetcher([{"current_price": 30.0}], upstream_error())
        cache = PriceCache(fetcher, PRICE_URL, ttl=60.0)

        mock_time.return_value = 1000.0
        good = asyncio.run(cache.get())
        mock_time.return_value = 1100.0
        fallback = asyncio.run(cache.get())

        assert fallback is good
        assert len(fetcher.calls) == 2

    @patch("totem.src.PriceCache.time.time")
    def test_failure_keeps_staleness_clock(self, mock_time) -> None:
        """A failed refresh should not reset fetched_at, so the next call retries."""
        fetcher = FakeFetcher(
            [{"current_price": 30.0}], upstream_error(), upstream_error(), [{"current_price": 31.0}]
        )
        cache = PriceCache(fetcher, PRICE_URL, ttl=60.0)

        mock_time.return_value = 1000.0
        asyncio.run(cache.get())

        mock_time.return_value = 1100.0
        asyncio.run(cache.get())
        assert cache.get_age() == 100.0
        assert cache.is_stale()

        mock_time.return_value = 1101.0
        assert asyncio.run(cache.get()) == [{"current_price": 30.0}]

        mock_time.return_value = 1102.0
        assert asyncio.run(cache.get()) == [{"current_price": 31.0}]
        assert len(fetcher.calls) == 4
        assert cache.get_age() == 0.0
