"""StatusAggregator: Builds the status snapshot served to the dashboard.

Architecture:
    - Price data comes from PriceCache (TTL + single-flight)
    - Blockchain info and mempool are fetched directly on every request
    - All three requests run concurrently via asyncio.gather
    - Price and info are required; mempool is best-effort and degrades to 0
    - Value pools are reconciled against the price feed's circulating supply
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .upstreams import DEFAULT_COIN_ID, parse_block_height, parse_mempool_size, parse_price_payload
from .ValuePoolReconciler import ValuePools, reconcile_value_pools

if TYPE_CHECKING:
    from .PriceCache import PriceCache
    from .UpstreamFetcher import UpstreamFetcher

logger = logging.getLogger(__name__)


class AggregationError(Exception):
    """Raised when a required upstream (price or info) failed."""

    pass


@dataclass(frozen=True)
class StatusSnapshot:
    """Normalized status payload.

    Numeric fields are finite numbers or None, except mempool_size which
    defaults to 0.

    :ivar timestamp: Aggregation time in unix milliseconds.
    """

    timestamp: int
    price_usd: float | None
    price_change_24h: float | None
    market_cap_usd: float | None
    market_cap_change_24h: float | None
    market_cap_change_usd: float | None
    circulating_supply: float | None
    height: int | float | None
    mempool_size: int | float
    value_pools: ValuePools = field(repr=False)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON response body."""
        return {
            "timestamp": self.timestamp,
            "priceUsd": self.price_usd,
            "priceChange24h": self.price_change_24h,
            "marketCapUsd": self.market_cap_usd,
            "marketCapChange24h": self.market_cap_change_24h,
            "marketCapChangeUsd": self.market_cap_change_usd,
            "circulatingSupply": self.circulating_supply,
            "height": self.height,
            "mempoolSize": self.mempool_size,
            "valuePools": self.value_pools.to_dict(),
        }


class StatusAggregator:
    """Fans out to the upstreams and merges their payloads.

    :ivar price_cache: Cache in front of the price feed.
    :ivar fetcher: Fetcher for the info and mempool upstreams.
    :ivar info_url: Blockchain info URL.
    :ivar mempool_url: Mempool URL.
    :ivar coin_id: Coin id looked up in keyed price payloads.
    :ivar mempool_verify_tls: Whether the mempool certificate is validated.
    """

    def __init__(
        self,
        price_cache: PriceCache,
        fetcher: UpstreamFetcher,
        info_url: str,
        mempool_url: str,
        coin_id: str = DEFAULT_COIN_ID,
        mempool_verify_tls: bool = False,
    ) -> None:
        """Initialize the aggregator.

        :param price_cache: Cache in front of the price feed.
        :param fetcher: Fetcher for the info and mempool upstreams.
        :param info_url: Blockchain info URL.
        :param mempool_url: Mempool URL.
        :param coin_id: Coin id for keyed price payloads (default: "zcash").
        :param mempool_verify_tls: Validate the mempool certificate (default: False).
        """
        self.price_cache = price_cache
        self.fetcher = fetcher
        self.info_url = info_url
        self.mempool_url = mempool_url
        self.coin_id = coin_id
        self.mempool_verify_tls = mempool_verify_tls

    async def _fetch_mempool(self) -> Any:
        """Fetch the mempool payload, returning None on any failure."""
        try:
            return await self.fetcher.fetch(
                self.mempool_url, verify_tls=self.mempool_verify_tls
            )
        except Exception as e:
            logger.warning(f"Mempool unavailable, reporting size 0: {e}")
            return None

    async def get_status(self) -> StatusSnapshot:
        """Build a status snapshot from the three upstreams.

        :returns: StatusSnapshot timestamped when aggregation completed.
        :raises AggregationError: If the price or info upstream failed.
        """
        try:
            price_data, info_data, mempool_data = await asyncio.gather(
                self.price_cache.get(),
                self.fetcher.fetch(self.info_url),
                self._fetch_mempool(),
            )
        except Exception as e:
            raise AggregationError(f"Required upstream failed: {e}") from e

        quote = parse_price_payload(price_data, self.coin_id)
        pools = reconcile_value_pools(info_data, quote.circulating_supply)

        return StatusSnapshot(
            timestamp=int(time.time() * 1000),
            price_usd=quote.price_usd,
            price_change_24h=quote.price_change_24h,
            market_cap_usd=quote.market_cap_usd,
            market_cap_change_24h=quote.market_cap_change_24h,
            market_cap_change_usd=quote.market_cap_change_usd,
            circulating_supply=quote.circulating_supply,
            height=parse_block_height(info_data),
            mempool_size=parse_mempool_size(mempool_data),
            value_pools=pools,
        )
