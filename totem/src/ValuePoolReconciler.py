"""ValuePoolReconciler: Coin supply breakdown across value pools.

Algorithm:
    1. Read the valuePools records ({"id": ..., "chainValue": ...}) from the
       blockchain info payload
    2. Take chainValue for transparent, sprout, sapling, orchard and lockbox
       (0 when absent or not numeric)
    3. shielded = sprout + sapling + orchard
    4. total_chain = circulating supply when it is a positive finite number,
       otherwise the sum of all pools
    5. A missing or non-positive transparent pool is inferred as
       total_chain - shielded - lockbox, kept only if positive

.. code-block:: python

    >>> info = {"valuePools": [
    ...     {"id": "sprout", "chainValue": 1},
    ...     {"id": "sapling", "chainValue": 2},
    ...     {"id": "orchard", "chainValue": 3},
    ...     {"id": "lockbox", "chainValue": 4},
    ... ]}
    >>> pools = reconcile_value_pools(info, 20)
    >>> pools.transparent, pools.shielded, pools.total_chain
    (10, 6, 20)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .sanitize import sanitize_number

POOL_IDS = ("transparent", "sprout", "sapling", "orchard", "lockbox")


@dataclass(frozen=True)
class ValuePools:
    """Coin supply per value pool.

    :ivar transparent: Transparent pool (may be inferred).
    :ivar sprout: Sprout shielded pool.
    :ivar sapling: Sapling shielded pool.
    :ivar orchard: Orchard shielded pool.
    :ivar lockbox: Lockbox pool.
    :ivar shielded: sprout + sapling + orchard.
    :ivar total_chain: Total supply used for the breakdown.
    """

    transparent: float
    sprout: float
    sapling: float
    orchard: float
    lockbox: float
    shielded: float
    total_chain: float

    def to_dict(self) -> dict[str, float]:
        """Return the JSON representation used in the status payload."""
        return {
            "transparent": self.transparent,
            "sprout": self.sprout,
            "sapling": self.sapling,
            "orchard": self.orchard,
            "lockbox": self.lockbox,
            "shielded": self.shielded,
            "totalChain": self.total_chain,
        }


def _pool_records(info: Any) -> list[dict[str, Any]]:
    if not isinstance(info, dict):
        return []
    records = info.get("valuePools")
    if not isinstance(records, list):
        return []
    return [r for r in records if isinstance(r, dict)]


def _chain_value(records: list[dict[str, Any]], pool_id: str) -> float:
    for record in records:
        if record.get("id") == pool_id:
            return sanitize_number(record.get("chainValue")) or 0
    return 0


def reconcile_value_pools(info: Any, circulating_supply: float | None) -> ValuePools:
    """Derive a consistent value pool breakdown.

    Never raises: malformed input degrades to zeros.

    :param info: Blockchain info payload.
    :param circulating_supply: Authoritative total supply, if known.
    :returns: ValuePools with shielded and total_chain filled in.
    """
    records = _pool_records(info)
    transparent, sprout, sapling, orchard, lockbox = (
        _chain_value(records, pool_id) for pool_id in POOL_IDS
    )

    # Sums of finite values can still overflow to inf
    shielded = sanitize_number(sprout + sapling + orchard) or 0
    total_from_info = sanitize_number(transparent + shielded + lockbox) or 0

    supply = sanitize_number(circulating_supply)
    if supply is not None and supply > 0:
        total_chain = supply
    else:
        total_chain = total_from_info

    if transparent <= 0:
        inferred = sanitize_number(total_chain - shielded - lockbox)
        transparent = inferred if inferred is not None and inferred > 0 else 0

    transparent = sanitize_number(transparent) or 0

    return ValuePools(
        transparent=transparent,
        sprout=sprout,
        sapling=sapling,
        orchard=orchard,
        lockbox=lockbox,
        shielded=shielded,
        total_chain=total_chain,
    )
