"""CoinGecko price feed parser.

Endpoint: https://api.coingecko.com/api/v3/coins/markets?vs_currency=usd&ids={id}
Shapes accepted:
    - /coins/markets: list of market entries (first entry is used)
    - /simple/price: object keyed by coin id
Rate Limit: 30 calls/min (free), which is why the payload is cached
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..sanitize import first_present, sanitize_number

DEFAULT_COIN_ID = "zcash"


@dataclass(frozen=True)
class PriceQuote:
    """Normalized market data for one coin.

    :ivar price_usd: Spot price in USD.
    :ivar price_change_24h: 24h price change in percent.
    :ivar market_cap_usd: Market capitalization in USD.
    :ivar market_cap_change_24h: 24h market cap change in percent.
    :ivar market_cap_change_usd: 24h market cap change in USD.
    :ivar circulating_supply: Circulating supply in coins.
    """

    price_usd: float | None = None
    price_change_24h: float | None = None
    market_cap_usd: float | None = None
    market_cap_change_24h: float | None = None
    market_cap_change_usd: float | None = None
    circulating_supply: float | None = None


def select_price_entry(data: Any, coin_id: str = DEFAULT_COIN_ID) -> dict[str, Any] | None:
    """Pick the market entry for a coin out of either payload shape.

    :param data: Price feed payload.
    :param coin_id: CoinGecko coin id used for keyed payloads.
    :returns: The entry dict, or None if the payload has no usable entry.
    """
    if isinstance(data, list):
        entry = data[0] if data else None
    elif isinstance(data, dict):
        entry = data.get(coin_id)
    else:
        entry = None
    return entry if isinstance(entry, dict) else None


def parse_price_payload(data: Any, coin_id: str = DEFAULT_COIN_ID) -> PriceQuote:
    """Extract a PriceQuote from a price feed payload.

    Market-endpoint field names win over simple-price field names.

    :param data: Price feed payload.
    :param coin_id: CoinGecko coin id used for keyed payloads.
    :returns: PriceQuote with every field sanitized (None when unavailable).
    """
    entry = select_price_entry(data, coin_id)
    if entry is None:
        return PriceQuote()

    return PriceQuote(
        price_usd=sanitize_number(
            first_present(entry.get("current_price"), entry.get("usd"))
        ),
        price_change_24h=sanitize_number(
            first_present(
                entry.get("price_change_percentage_24h"),
                entry.get("usd_24h_change"),
            )
        ),
        market_cap_usd=sanitize_number(
            first_present(entry.get("market_cap"), entry.get("usd_market_cap"))
        ),
        market_cap_change_24h=sanitize_number(
            entry.get("market_cap_change_percentage_24h")
        ),
        market_cap_change_usd=sanitize_number(entry.get("market_cap_change_24h")),
        circulating_supply=sanitize_number(entry.get("circulating_supply")),
    )
