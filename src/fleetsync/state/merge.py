"""Live update merger.

Folds push events into an already-fetched row store. It never inserts rows:
a vehicle that has not been paged in yet gets no live updates until it is.
"""

from __future__ import annotations

import logging
from typing import Any

from fleetsync.models.events import VehicleStatusEvent, parse_event
from fleetsync.state.policy import should_accept_update
from fleetsync.state.store import RowStore

_logger = logging.getLogger(__name__)


class LiveUpdateMerger:
    """Apply push events to a :class:`RowStore`.

    Parameters
    ----------
    store
        Rows to patch.
    reject_stale
        When ``True``, drop events whose ``source_ts`` is older than the
        stored row's. When ``False`` (the default) events are applied in
        arrival order, so a late stale event overwrites newer values.
    skew_allowance_seconds
        Tolerance used by the stale check.
    """

    def __init__(
        self,
        store: RowStore,
        *,
        reject_stale: bool = False,
        skew_allowance_seconds: float = 0.0,
    ) -> None:
        self._store = store
        self._reject_stale = reject_stale
        self._skew_allowance_seconds = skew_allowance_seconds

    def apply(self, event: Any, scope_owner_id: str) -> bool:
        """Merge one push message into the store.

        Accepts a raw push message or an already parsed
        :class:`VehicleStatusEvent`. Never raises; returns ``True`` only when
        a row was replaced.
        """
        try:
            return self._apply(event, scope_owner_id)
        except Exception:
            _logger.debug("Live update merge failed", exc_info=True)
            return False

    def _apply(self, event: Any, scope_owner_id: str) -> bool:
        parsed = event if isinstance(event, VehicleStatusEvent) else parse_event(event)
        if parsed is None:
            _logger.debug("Dropping malformed live event")
            return False
        if parsed.owner_id != scope_owner_id:
            return False

        current = self._store.get(parsed.vin)
        if current is None:
            _logger.debug("Dropping live event for vin=%s not loaded", parsed.vin)
            return False

        if self._reject_stale and not should_accept_update(
            cached_ts=current.source_ts,
            incoming_ts=parsed.source_ts,
            skew_allowance_seconds=self._skew_allowance_seconds,
        ):
            _logger.debug("Dropping stale live event for vin=%s", parsed.vin)
            return False

        return self._store.patch(parsed.vin, parsed.to_patch())
