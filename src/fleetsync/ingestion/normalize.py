"""Normalization helpers.

Centralizes defensive parsing and placeholder handling.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(result):
        return None
    return result


def is_meaningful(value: Any) -> bool:
    """Return True if the value should be included in a row patch."""

    if value is None:
        return False
    if value == "":
        return False
    if value == {}:
        return False
    return bool(value != [])


def prune_patch(data: dict[str, Any]) -> dict[str, Any]:
    """Drop non-meaningful values from a flat patch.

    Missing keys in a patch mean "no update", so a ``None`` coming out of a
    partial push event must never blank out a stored value.
    """

    return {key: value for key, value in data.items() if is_meaningful(value)}


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize upstream timestamps to epoch seconds.

    - Empty/missing -> None
    - <= 0 or non-finite -> None
    - Milliseconds (> 1e11) -> seconds
    - ISO-8601 strings and datetimes are accepted
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return moment.timestamp()
    if isinstance(value, str):
        try:
            ts = float(value)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                return None
            return normalize_timestamp_seconds(parsed)
    else:
        ts_value = safe_float(value)
        if ts_value is None:
            return None
        ts = ts_value
    if not math.isfinite(ts) or ts <= 0:
        return None
    if ts > 1e11:
        ts /= 1000.0
    return ts


def parse_timestamp(value: Any) -> datetime | None:
    """Convert an epoch (seconds or ms) or ISO string to a UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    seconds = normalize_timestamp_seconds(value)
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, ValueError, OSError):
        # Beyond the platform time_t range.
        return None
