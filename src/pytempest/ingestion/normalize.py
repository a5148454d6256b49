"""Normalization helpers.

Centralizes defensive parsing of numeric payload values. WeatherFlow
sends ``null`` for sensors that failed a reading, and positional records
may be shorter than the documented layout on older firmware.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def float_or(value: Any, default: float) -> float:
    parsed = safe_float(value)
    return default if parsed is None else parsed


def int_or(value: Any, default: int) -> int:
    parsed = safe_int(value)
    return default if parsed is None else parsed


def normalize_timestamp_seconds(value: Any) -> int | None:
    """Normalize epoch timestamps to whole seconds.

    - Empty/missing -> None
    - <= 0 -> None
    - Milliseconds (> 1e11) -> seconds
    """

    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > 1e11:
        ts /= 1000.0
    return int(ts)
