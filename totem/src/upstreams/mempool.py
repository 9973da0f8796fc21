"""Mempool parser.

Endpoint: https://zcashmetro.io:3000/mempool (self-signed certificate)
Returns either the list of pending transactions or an object carrying a
size/length count.
"""

from __future__ import annotations

from typing import Any

from ..sanitize import first_present, sanitize_number


def parse_mempool_size(data: Any) -> int | float:
    """Count pending transactions in a mempool payload.

    :param data: Mempool payload, or None when the upstream was unavailable.
    :returns: Number of pending transactions (0 when unknown).
    """
    if isinstance(data, list):
        return len(data)
    if isinstance(data, dict):
        size = sanitize_number(first_present(data.get("size"), data.get("length")))
        return size if size is not None else 0
    return 0
