"""Blockchain info parser.

Endpoint: https://mainnet.zcashexplorer.app/api/v1/blockchain-info
The height field moved between explorer versions, so several locations are
tried. Value pools are handled by ValuePoolReconciler.
"""

from __future__ import annotations

from typing import Any

from ..sanitize import first_present, sanitize_number


def parse_block_height(info: Any) -> int | float | None:
    """Read the chain height from a blockchain info payload.

    Tries ``blocks``, then ``blockchain.blocks``, then ``estimatedheight``.

    :param info: Blockchain info payload.
    :returns: Block height, or None if unavailable.
    """
    if not isinstance(info, dict):
        return None

    blockchain = info.get("blockchain")
    nested = blockchain.get("blocks") if isinstance(blockchain, dict) else None

    return sanitize_number(
        first_present(info.get("blocks"), nested, info.get("estimatedheight"))
    )
