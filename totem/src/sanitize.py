"""Numeric sanitizing shared by the reconciler and the aggregator.

Upstream payloads are loosely typed: numbers may arrive as strings, be
missing, or be NaN. Every numeric field leaving this service is either a
finite number or None.
"""

from __future__ import annotations

import math
from typing import Any


def sanitize_number(value: Any) -> int | float | None:
    """Return value as a finite number, or None.

    :param value: Raw upstream value.
    :returns: The finite number (strings are parsed as float), else None.

    .. code-block:: python

        >>> sanitize_number("12.5")
        12.5
        >>> sanitize_number(float("nan")) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        # Integers beyond float range cannot be mixed with float arithmetic
        try:
            float(value)
        except OverflowError:
            return None
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def first_present(*values: Any) -> Any:
    """Return the first value that is not None, or None."""
    for value in values:
        if value is not None:
            return value
    return None
