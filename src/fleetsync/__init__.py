"""fleetsync - Async dashboard sync for vehicle telemetry."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetsync")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetsync.client import FleetSyncClient
from fleetsync.config import FleetSyncConfig
from fleetsync.controller import DashboardController, DashboardView, LoadStatus
from fleetsync.exceptions import (
    FleetSyncApiError,
    FleetSyncChannelError,
    FleetSyncConfigError,
    FleetSyncError,
    FleetSyncTransportError,
)
from fleetsync.models import (
    CacheProvenance,
    FetchMode,
    InitialFetchResponse,
    PageFetchResponse,
    PaginationState,
    TelemetryRecord,
    VehicleStatusEvent,
)
from fleetsync.subscription import SubscriptionManager, SubscriptionState

__all__ = [
    "__version__",
    "CacheProvenance",
    "DashboardController",
    "DashboardView",
    "FetchMode",
    "FleetSyncApiError",
    "FleetSyncChannelError",
    "FleetSyncClient",
    "FleetSyncConfig",
    "FleetSyncConfigError",
    "FleetSyncError",
    "FleetSyncTransportError",
    "InitialFetchResponse",
    "LoadStatus",
    "PageFetchResponse",
    "PaginationState",
    "SubscriptionManager",
    "SubscriptionState",
    "TelemetryRecord",
    "VehicleStatusEvent",
]
