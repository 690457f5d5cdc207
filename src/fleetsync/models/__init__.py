"""Data models for dashboard payloads and cursor state."""

from fleetsync.models._base import FleetBaseModel, UtcTimestamp
from fleetsync.models.events import VehicleStatusEvent, extract_payload, parse_event
from fleetsync.models.pagination import CacheProvenance, PaginationState
from fleetsync.models.responses import FetchMode, InitialFetchResponse, PageFetchResponse
from fleetsync.models.telemetry import TelemetryRecord

__all__ = [
    "CacheProvenance",
    "FetchMode",
    "FleetBaseModel",
    "InitialFetchResponse",
    "PageFetchResponse",
    "PaginationState",
    "TelemetryRecord",
    "UtcTimestamp",
    "VehicleStatusEvent",
    "extract_payload",
    "parse_event",
]
