"""
Zcash Totem - Status Aggregation Module

This module aggregates three upstreams into one status payload:
- UpstreamFetcher: Normalized JSON GET with uniform UpstreamError failures
- PriceCache: Stale-while-revalidate price cache with single-flight refresh
- ValuePoolReconciler: Supply breakdown with transparent pool inference
- StatusAggregator: Concurrent fan-out and snapshot assembly
- StatusServer: FastAPI app serving GET /api/status
- upstreams: Per-upstream payload shape parsers
"""

from .PriceCache import PriceCache
from .StatusAggregator import AggregationError, StatusAggregator, StatusSnapshot
from .StatusServer import create_app
from .UpstreamFetcher import UpstreamError, UpstreamFetcher, normalize_json
from .ValuePoolReconciler import ValuePools, reconcile_value_pools

__all__ = [
    "AggregationError",
    "PriceCache",
    "StatusAggregator",
    "StatusSnapshot",
    "UpstreamError",
    "UpstreamFetcher",
    "ValuePools",
    "create_app",
    "normalize_json",
    "reconcile_value_pools",
]
