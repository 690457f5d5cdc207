"""Custom exception hierarchy for fleetsync."""

from __future__ import annotations


class FleetSyncError(Exception):
    """Base exception for all fleetsync errors."""


class FleetSyncConfigError(FleetSyncError):
    """Invalid or missing configuration."""


class FleetSyncTransportError(FleetSyncError):
    """HTTP-level failure (network, timeout, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class FleetSyncApiError(FleetSyncError):
    """Backend returned a payload that does not match the fetch contract."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class FleetSyncChannelError(FleetSyncError):
    """Push channel connect, subscribe or delivery failure.

    Channel errors only ever degrade live updates; they are reported to the
    subscription error handler and never propagate into the fetch path.
    """

    def __init__(self, message: str, *, channel: str = "") -> None:
        self.channel = channel
        super().__init__(message)
