"""Stale-event policy for live merges."""

from __future__ import annotations

from datetime import datetime


def should_accept_update(
    *,
    cached_ts: datetime | None,
    incoming_ts: datetime | None,
    skew_allowance_seconds: float,
) -> bool:
    """Decide whether an incoming live event may overwrite a stored row.

    Policy:
    - If both timestamps exist: accept if incoming is newer (or within skew allowance).
    - If either is missing there is no ordering signal; accept.
    """
    if incoming_ts is None or cached_ts is None:
        return True
    return (incoming_ts - cached_ts).total_seconds() >= -skew_allowance_seconds
