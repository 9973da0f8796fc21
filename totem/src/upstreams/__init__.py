"""
Shape parsers for the upstream payloads.

Each upstream has its own tolerant parser that turns a loosely typed JSON
payload into normalized values:

Usage:
    from totem.src.upstreams import parse_price_payload, parse_block_height

    quote = parse_price_payload(price_data)
    height = parse_block_height(info_data)
    size = parse_mempool_size(mempool_data)
"""

from .chain_info import parse_block_height
from .mempool import parse_mempool_size
from .price import DEFAULT_COIN_ID, PriceQuote, parse_price_payload, select_price_entry

__all__ = [
    "DEFAULT_COIN_ID",
    "PriceQuote",
    "parse_block_height",
    "parse_mempool_size",
    "parse_price_payload",
    "select_price_entry",
]
