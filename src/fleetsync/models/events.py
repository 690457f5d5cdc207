"""Live vehicle status events.

Push messages arrive wrapped as ``{"data": {"payload": {...}}}``. The payload
uses the upstream event field names (``VIN__c``, ``FuelLevelPct__c`` ...);
plain snake_case and camelCase names are accepted as well.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from fleetsync.ingestion.normalize import prune_patch
from fleetsync.models._base import FleetBaseModel, UtcTimestamp


class VehicleStatusEvent(FleetBaseModel):
    """A partial telemetry update for one vehicle of one owner."""

    owner_id: str = Field(validation_alias=AliasChoices("AccountId__c", "ownerId", "owner_id"))
    vin: str = Field(validation_alias=AliasChoices("VIN__c", "vin"))
    fuel_level_pct: float | None = Field(
        default=None,
        validation_alias=AliasChoices("FuelLevelPct__c", "fuelLevelPct", "fuel_level_pct"),
    )
    mileage_km: float | None = Field(
        default=None,
        validation_alias=AliasChoices("MileageKm__c", "mileageKm", "mileage_km"),
    )
    software_version: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SoftwareVersion__c", "softwareVersion", "software_version"),
    )
    source_ts: UtcTimestamp = Field(
        default=None,
        validation_alias=AliasChoices("SourceTs__c", "sourceTs", "source_ts"),
    )

    @field_validator("owner_id", "vin", mode="before")
    @classmethod
    def _strip_key(cls, value: Any) -> str:
        key = str(value).strip() if value is not None else ""
        if not key:
            raise ValueError("key fields must be non-empty")
        return key

    @field_validator("software_version", mode="before")
    @classmethod
    def _stringify_version(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def to_patch(self) -> dict[str, Any]:
        """Fields carried by this event, ready to merge into a row.

        Fields the event does not carry are omitted so they keep their
        stored values.
        """
        dumped = self.model_dump(
            include={"fuel_level_pct", "mileage_km", "software_version", "source_ts"},
            exclude_none=True,
        )
        return prune_patch(dumped)


class _EventData(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    payload: dict[str, Any] | None = None


class _EventEnvelope(BaseModel):
    """Minimal Pydantic envelope for push messages."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    data: _EventData = Field(...)


def extract_payload(message: Any) -> dict[str, Any] | None:
    """Return the event payload of a push message, or ``None`` if it has none."""
    if not isinstance(message, dict):
        return None
    try:
        envelope = _EventEnvelope.model_validate(message)
    except ValidationError:
        return None
    payload = envelope.data.payload
    return payload or None


def parse_event(message: Any) -> VehicleStatusEvent | None:
    """Parse a push message into an event; ``None`` for malformed messages."""
    payload = extract_payload(message)
    if payload is None:
        return None
    try:
        return VehicleStatusEvent.model_validate(payload)
    except ValidationError:
        return None
