"""Ordered, vin-addressable row store.

Every mutation builds a new tuple of rows (copy-on-write), so observers can
detect changes by identity and readers never see a half-applied update.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from fleetsync.models.telemetry import TelemetryRecord

_logger = logging.getLogger(__name__)


class RowStore:
    """Telemetry rows for one owner, in fetch order, unique by vin."""

    def __init__(self, *, on_change: Callable[[], None] | None = None) -> None:
        self._rows: tuple[TelemetryRecord, ...] = ()
        self._index: dict[str, int] = {}
        self._version = 0
        self._on_change = on_change

    @property
    def rows(self) -> tuple[TelemetryRecord, ...]:
        return self._rows

    @property
    def version(self) -> int:
        """Incremented on every mutation."""
        return self._version

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, vin: object) -> bool:
        return vin in self._index

    def get(self, vin: str) -> TelemetryRecord | None:
        idx = self._index.get(vin)
        return None if idx is None else self._rows[idx]

    def _commit(self, rows: tuple[TelemetryRecord, ...], index: dict[str, int]) -> None:
        self._rows = rows
        self._index = index
        self._version += 1
        if self._on_change is not None:
            self._on_change()

    def clear(self) -> None:
        self._commit((), {})

    def replace(self, records: Iterable[TelemetryRecord]) -> None:
        """Discard all rows and take *records* in order."""
        rows, index = self._extend((), {}, records)
        self._commit(rows, index)

    def append(self, records: Iterable[TelemetryRecord]) -> None:
        """Add *records* after the existing rows, keeping existing order."""
        rows, index = self._extend(self._rows, dict(self._index), records)
        self._commit(rows, index)

    def patch(self, vin: str, fields: dict[str, Any]) -> bool:
        """Replace the row for *vin* with a shallow-merged copy.

        Returns ``False`` without touching the store when *vin* is unknown or
        the merge changes nothing. Position is preserved.
        """
        idx = self._index.get(vin)
        if idx is None:
            return False
        current = self._rows[idx]
        updated = current.merged(fields)
        if updated == current:
            return False
        rows = list(self._rows)
        rows[idx] = updated
        self._commit(tuple(rows), self._index)
        return True

    @staticmethod
    def _extend(
        rows: tuple[TelemetryRecord, ...],
        index: dict[str, int],
        records: Iterable[TelemetryRecord],
    ) -> tuple[tuple[TelemetryRecord, ...], dict[str, int]]:
        result = list(rows)
        for record in records:
            if record.vin in index:
                # Pages are disjoint by the cursor contract; a repeat means the
                # upstream broke it. The first occurrence keeps its slot.
                _logger.warning("Ignoring duplicate row for vin=%s", record.vin)
                continue
            index[record.vin] = len(result)
            result.append(record)
        return tuple(result), index
