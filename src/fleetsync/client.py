"""High-level async client for the fleet dashboard backend."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from fleetsync._api.dashboard import DashboardBackend, HttpDashboardBackend
from fleetsync._mqtt import MqttPushChannel, PushChannel
from fleetsync._transport import HttpTransport
from fleetsync.config import FleetSyncConfig
from fleetsync.controller import DashboardController
from fleetsync.exceptions import FleetSyncError

_logger = logging.getLogger(__name__)


class FleetSyncClient:
    """Async client that hands out per-owner dashboard controllers.

    Usage::

        async with FleetSyncClient(config) as client:
            async with client.dashboard("001-ACME") as dashboard:
                await dashboard.load_more()
                rows = dashboard.rows

    The client owns the HTTP session (unless one is passed in) and the push
    channel; controllers it created are closed when the client exits.
    """

    def __init__(
        self,
        config: FleetSyncConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        backend: DashboardBackend | None = None,
        channel: PushChannel | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._backend = backend
        self._external_channel = channel is not None
        self._channel = channel
        self._controllers: list[DashboardController] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetSyncClient:
        if self._backend is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._backend = HttpDashboardBackend(self._config, HttpTransport(self._config, self._http_session))
        if self._channel is None and self._config.push_available:
            self._channel = MqttPushChannel(self._config, logger=_logger)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        controllers = self._controllers
        self._controllers = []
        for controller in controllers:
            await controller.close()
        if not self._external_channel and isinstance(self._channel, MqttPushChannel):
            await self._channel.close()
            self._channel = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Controllers
    # ------------------------------------------------------------------

    def _require_backend(self) -> DashboardBackend:
        if self._backend is None:
            raise FleetSyncError("Client not initialized. Use 'async with FleetSyncClient(...) as client:'")
        return self._backend

    def dashboard(self, owner_id: str) -> DashboardController:
        """Create a controller for *owner_id*.

        The controller is idle until :meth:`DashboardController.start` (or
        ``async with``) runs its initial load and subscription.
        """
        controller = DashboardController(
            owner_id,
            self._require_backend(),
            channel=self._channel,
            config=self._config,
        )
        self._controllers.append(controller)
        return controller

    async def open_dashboard(self, owner_id: str) -> DashboardController:
        """Create a controller for *owner_id* and start it."""
        controller = self.dashboard(owner_id)
        await controller.start()
        return controller
