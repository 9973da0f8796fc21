#!/usr/bin/env python3
"""Zcash Totem status server.

Aggregates the CoinGecko price feed, a blockchain info endpoint and a
mempool endpoint into one JSON status payload served at GET /api/status.

Start with ``python -m totem.main``; configuration comes from environment
variables, overridable on the command line.
"""

import argparse
import logging
import os
import sys

import uvicorn

from .src.PriceCache import PriceCache
from .src.StatusAggregator import StatusAggregator
from .src.StatusServer import create_app
from .src.UpstreamFetcher import UpstreamFetcher

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_PRICE_URL = (
    "https://api.coingecko.com/api/v3/coins/markets"
    "?vs_currency=usd&ids=zcash&price_change_percentage=24h"
)
DEFAULT_INFO_URL = "https://mainnet.zcashexplorer.app/api/v1/blockchain-info"
DEFAULT_MEMPOOL_URL = "https://zcashmetro.io:3000/mempool"


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser, with defaults taken from the environment.

    :returns: Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        description="Zcash Totem: aggregated price, chain and mempool status",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables (CLI args take precedence):
  HOST, PORT, PRICE_CACHE_TTL_MS, PRICE_URL, INFO_URL, MEMPOOL_URL,
  COIN_ID, FETCH_TIMEOUT
""",
    )

    parser.add_argument(
        "--host",
        type=str,
        help="Interface to listen on (default: 0.0.0.0)",
        default=os.environ.get("HOST") or "0.0.0.0",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port to listen on (default: 4000)",
        default=int(os.environ.get("PORT") or "4000"),
    )

    parser.add_argument(
        "--price-cache-ttl-ms",
        dest="price_cache_ttl_ms",
        type=int,
        help="Milliseconds a price payload is served before refreshing (default: 60000)",
        default=int(os.environ.get("PRICE_CACHE_TTL_MS") or "60000"),
    )

    parser.add_argument(
        "--price-url",
        dest="price_url",
        type=str,
        help="Price feed URL (CoinGecko markets or simple price)",
        default=os.environ.get("PRICE_URL") or DEFAULT_PRICE_URL,
    )

    parser.add_argument(
        "--info-url",
        dest="info_url",
        type=str,
        help="Blockchain info URL",
        default=os.environ.get("INFO_URL") or DEFAULT_INFO_URL,
    )

    parser.add_argument(
        "--mempool-url",
        dest="mempool_url",
        type=str,
        help="Mempool URL (certificate is not validated)",
        default=os.environ.get("MEMPOOL_URL") or DEFAULT_MEMPOOL_URL,
    )

    parser.add_argument(
        "--coin-id",
        dest="coin_id",
        type=str,
        help="Coin id for keyed price payloads (default: zcash)",
        default=os.environ.get("COIN_ID") or "zcash",
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for upstream requests in seconds (default: 15.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "15.0"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and validate command line arguments.

    :param argv: Arguments to parse (default: sys.argv[1:]).
    :returns: Parsed arguments.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.price_cache_ttl_ms < 0:
        parser.error("--price-cache-ttl-ms must not be negative")

    if not 1 <= args.port <= 65535:
        parser.error("--port must be between 1 and 65535")

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    return args


def build_aggregator(args: argparse.Namespace) -> StatusAggregator:
    """Wire fetcher, price cache and aggregator from parsed arguments.

    :param args: Parsed arguments.
    :returns: Ready-to-use StatusAggregator.
    """
    fetcher = UpstreamFetcher(timeout=args.fetch_timeout)
    price_cache = PriceCache(
        fetcher,
        args.price_url,
        ttl=args.price_cache_ttl_ms / 1000,
    )
    return StatusAggregator(
        price_cache=price_cache,
        fetcher=fetcher,
        info_url=args.info_url,
        mempool_url=args.mempool_url,
        coin_id=args.coin_id,
    )


def main() -> None:
    """Main entry point for the Zcash Totem server."""
    args = parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Log configuration
    logger.info("=" * 60)
    logger.info("Zcash Totem - Status Aggregator")
    logger.info("=" * 60)
    logger.info(f"Listen:            {args.host}:{args.port}")
    logger.info(f"Price URL:         {args.price_url}")
    logger.info(f"Info URL:          {args.info_url}")
    logger.info(f"Mempool URL:       {args.mempool_url}")
    logger.info(f"Coin ID:           {args.coin_id}")
    logger.info(f"Price Cache TTL:   {args.price_cache_ttl_ms}ms")
    logger.info(f"Fetch Timeout:     {args.fetch_timeout}s")
    logger.info("=" * 60)

    try:
        app = create_app(build_aggregator(args))
        uvicorn.run(
            app,
            host=args.host,
            port=args.port,
            log_level="debug" if args.verbose else "info",
        )
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
