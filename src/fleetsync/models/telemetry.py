"""Telemetry record model."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import field_validator

from fleetsync.models._base import FleetBaseModel, UtcTimestamp


class TelemetryRecord(FleetBaseModel):
    """One vehicle's current known state, as rendered in a dashboard row.

    Records are immutable. :meth:`merged` returns a new record so observers
    can detect changes with a plain equality or identity check.
    """

    MERGEABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"fuel_level_pct", "mileage_km", "software_version", "source_ts"}
    )

    vin: str
    """Vehicle Identification Number, unique within an owner scope."""
    fuel_level_pct: float | None = None
    """Fuel level in percent. Expected 0-100, not enforced."""
    mileage_km: float | None = None
    """Odometer in km."""
    software_version: str | None = None
    """Installed software version."""
    source_ts: UtcTimestamp = None
    """Timestamp of the upstream observation that produced these values."""

    @field_validator("vin")
    @classmethod
    def _normalize_vin(cls, value: str) -> str:
        vin = value.strip()
        if not vin:
            raise ValueError("vin must be non-empty")
        return vin

    @field_validator("software_version", mode="before")
    @classmethod
    def _stringify_version(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def merged(self, patch: dict[str, Any]) -> TelemetryRecord:
        """Shallow merge: *patch* keys overwrite, everything else is kept."""
        update = {key: value for key, value in patch.items() if key in self.MERGEABLE_FIELDS}
        if not update:
            return self
        return self.model_copy(update=update)
