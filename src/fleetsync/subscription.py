"""Live update subscription lifecycle.

Owns the single push subscription of a dashboard controller. Everything that
can go wrong here is reported and swallowed: live updates are an
enhancement, and a failing channel must never block or corrupt fetches.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from fleetsync._constants import REPLAY_LATEST
from fleetsync._mqtt import PushChannel, SubscriptionHandle
from fleetsync.exceptions import FleetSyncChannelError
from fleetsync.state.merge import LiveUpdateMerger

_logger = logging.getLogger(__name__)


class SubscriptionState(StrEnum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    FAILED = "failed"


class SubscriptionManager:
    """Establish and release one push subscription feeding a merger.

    State machine::

        UNSUBSCRIBED -> SUBSCRIBING -> ACTIVE
                                    -> FAILED

    There is no automatic transition out of ``FAILED``; a dropped or refused
    channel degrades to no live updates until the controller is recreated.
    """

    def __init__(self, channel: PushChannel | None, merger: LiveUpdateMerger) -> None:
        self._channel = channel
        self._merger = merger
        self._state = SubscriptionState.UNSUBSCRIBED
        self._handle: SubscriptionHandle | None = None
        self._scope_owner_id: str | None = None
        self._remove_error_handler: Callable[[], None] | None = None
        self.last_error: Exception | None = None

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def handle(self) -> SubscriptionHandle | None:
        return self._handle

    @property
    def is_active(self) -> bool:
        return self._state == SubscriptionState.ACTIVE

    def _on_message(self, message: Any) -> None:
        owner_id = self._scope_owner_id
        if owner_id is None:
            return
        self._merger.apply(message, owner_id)

    def _on_error(self, error: Exception) -> None:
        self.last_error = error
        _logger.warning("Live update channel error: %s", error)

    async def start(self, channel_name: str, scope_owner_id: str, *, replay_id: int = REPLAY_LATEST) -> None:
        """Subscribe to *channel_name* for events of *scope_owner_id*.

        A silent no-op when no push channel is available, or when this
        manager has already left ``UNSUBSCRIBED``.
        """
        channel = self._channel
        if channel is None or not channel.is_enabled:
            _logger.debug("Push channel unavailable; live updates disabled")
            return
        if self._state != SubscriptionState.UNSUBSCRIBED:
            return

        self._scope_owner_id = scope_owner_id
        if self._remove_error_handler is None:
            self._remove_error_handler = channel.on_error(self._on_error)

        self._state = SubscriptionState.SUBSCRIBING
        try:
            handle = await channel.subscribe(channel_name, replay_id, self._on_message)
        except Exception as exc:
            self._state = SubscriptionState.FAILED
            error = exc
            if not isinstance(exc, FleetSyncChannelError):
                error = FleetSyncChannelError(f"Subscribe to {channel_name} failed: {exc}", channel=channel_name)
            self._on_error(error)
            _logger.debug("Subscription to %s failed", channel_name, exc_info=True)
            return

        if self._state != SubscriptionState.SUBSCRIBING:
            # Stopped while the request was in flight; release right away.
            await self._release(handle)
            return
        self._handle = handle
        self._state = SubscriptionState.ACTIVE
        _logger.debug("Subscribed to %s for owner=%s", channel_name, scope_owner_id)

    async def stop(self) -> None:
        """Deregister the subscription and the error handler, if any."""
        handle = self._handle
        self._handle = None
        self._scope_owner_id = None
        self._state = SubscriptionState.UNSUBSCRIBED
        remove_error_handler = self._remove_error_handler
        self._remove_error_handler = None
        if remove_error_handler is not None:
            remove_error_handler()
        if handle is not None:
            await self._release(handle)

    async def _release(self, handle: SubscriptionHandle) -> None:
        channel = self._channel
        if channel is None:
            return
        try:
            await channel.unsubscribe(handle)
        except Exception:
            _logger.debug("Unsubscribe from %s failed", handle.channel, exc_info=True)
