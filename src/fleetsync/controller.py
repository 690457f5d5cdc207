"""Dashboard controller: fetch orchestration and the consumer-facing state.

A controller is bound to one owner for its whole life. It reconciles three
sources into one row list:

* the initial load (snapshot or first page),
* page loads triggered by the consumer,
* live events delivered through the subscription.

Fetch failures never escape the public operations; they surface as
``LoadStatus.ERRORED`` with the cause in :attr:`DashboardController.last_error`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from fleetsync._api.dashboard import DashboardBackend, make_nonce
from fleetsync._constants import SPINNER_TEXT_INITIAL, SPINNER_TEXT_MORE
from fleetsync._mqtt import PushChannel
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncError
from fleetsync.models.pagination import PaginationState
from fleetsync.models.responses import FetchMode
from fleetsync.models.telemetry import TelemetryRecord
from fleetsync.state.merge import LiveUpdateMerger
from fleetsync.state.store import RowStore
from fleetsync.subscription import SubscriptionManager

_logger = logging.getLogger(__name__)

Listener = Callable[["DashboardController"], None]


class LoadStatus(StrEnum):
    IDLE = "idle"
    LOADING_INITIAL = "loading_initial"
    LOADING_MORE = "loading_more"
    READY = "ready"
    ERRORED = "errored"


@dataclass(frozen=True)
class DashboardView:
    """Immutable snapshot of everything a presentation layer reads."""

    owner_id: str
    rows: tuple[TelemetryRecord, ...]
    status: LoadStatus
    is_loading_initial: bool
    is_loading_more: bool
    show_spinner: bool
    spinner_text: str
    disable_load_more: bool
    disable_refresh: bool
    cached_at: datetime | None
    from_cache: bool
    loaded_count: int
    total_count: int


class DashboardController:
    """Keep one owner's telemetry rows in sync.

    Usage::

        controller = DashboardController("001-ACME", backend, channel=channel)
        async with controller:
            await controller.load_more()
            print(controller.rows)

    Parameters
    ----------
    owner_id
        Owning entity every fetched and streamed record is scoped to.
        Immutable; a different owner needs a new controller.
    backend
        Initial/page fetch operations.
    channel
        Push channel for live updates. ``None`` disables them.
    config
        Page size hint, channel name and merge policy.
    nonce_factory
        Produces the cache-busting nonce for each fetch.
    """

    def __init__(
        self,
        owner_id: str,
        backend: DashboardBackend,
        *,
        channel: PushChannel | None = None,
        config: FleetSyncConfig | None = None,
        nonce_factory: Callable[[], str] = make_nonce,
    ) -> None:
        if not owner_id or not owner_id.strip():
            raise ValueError("owner_id must be non-empty")
        self._owner_id = owner_id.strip()
        self._backend = backend
        self._config = config or FleetSyncConfig()
        self._nonce_factory = nonce_factory

        self._store = RowStore(on_change=self._notify)
        self._merger = LiveUpdateMerger(
            self._store,
            reject_stale=self._config.reject_stale_events,
            skew_allowance_seconds=self._config.stale_skew_allowance_seconds,
        )
        self._subscription = SubscriptionManager(channel, self._merger)

        self._pagination = PaginationState.reset()
        self._loading_initial = False
        self._loading_more = False
        self._completed = False
        self._last_error: Exception | None = None
        # Bumped by every initial load; fetches that finish under an older
        # generation are discarded.
        self._generation = 0
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DashboardController:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Run the initial load and establish the live subscription."""
        await asyncio.gather(
            self.initial_load(),
            self._subscription.start(
                self._config.channel_name,
                self._owner_id,
                replay_id=self._config.replay_id,
            ),
        )

    async def close(self) -> None:
        """Deregister the subscription and ignore any fetch still in flight."""
        self._generation += 1
        self._listeners.clear()
        await self._subscription.stop()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* after every change of rows or status.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                _logger.debug("Dashboard listener failed", exc_info=True)

    # ------------------------------------------------------------------
    # Fetch orchestration
    # ------------------------------------------------------------------

    def _fail(self, operation: str, exc: Exception) -> None:
        self._last_error = exc
        _logger.warning(
            "%s failed for owner=%s: %s",
            operation,
            self._owner_id,
            exc,
            exc_info=not isinstance(exc, FleetSyncError),
        )

    async def initial_load(self) -> None:
        """Discard all state and load the snapshot or first page."""
        self._generation += 1
        generation = self._generation
        self._loading_initial = True
        self._loading_more = False
        self._last_error = None
        self._pagination = PaginationState.reset()
        self._store.clear()

        try:
            response = await self._backend.initial_fetch(
                self._owner_id,
                nonce=self._nonce_factory(),
                page_size=self._config.page_size,
            )
        except Exception as exc:
            if generation == self._generation:
                self._fail("Initial load", exc)
            else:
                _logger.debug("Superseded initial load failed: %s", exc)
        else:
            if generation != self._generation:
                _logger.debug("Discarding superseded initial load for owner=%s", self._owner_id)
                return
            self._pagination = PaginationState.from_initial(response)
            self._store.replace(response.records)
            _logger.debug(
                "Initial load owner=%s mode=%s rows=%d more=%s",
                self._owner_id,
                self._pagination.mode,
                len(self._store),
                self._pagination.can_fetch_more,
            )
        finally:
            if generation == self._generation:
                self._loading_initial = False
                self._completed = True
                self._notify()

    async def load_more(self) -> None:
        """Append the next page.

        Returns immediately, without a backend call, when the dataset is not
        paginated, is exhausted, or another load is in flight.
        """
        if self._loading_initial or self._loading_more:
            return
        pagination = self._pagination
        if pagination.mode != FetchMode.PAGINATED or pagination.exhausted:
            return
        token = pagination.continuation_token
        if token is None:
            self._pagination = pagination.mark_exhausted()
            self._notify()
            return

        generation = self._generation
        self._loading_more = True
        self._last_error = None
        self._notify()

        try:
            response = await self._backend.page_fetch(
                self._owner_id,
                token,
                nonce=self._nonce_factory(),
                page_size=self._config.page_size,
            )
        except Exception as exc:
            if generation == self._generation:
                self._fail("Page load", exc)
        else:
            if generation != self._generation:
                _logger.debug("Discarding page from superseded load for owner=%s", self._owner_id)
                return
            self._pagination = self._pagination.advance(response)
            self._store.append(response.records)
        finally:
            if generation == self._generation:
                self._loading_more = False
                self._notify()

    async def reload(self) -> None:
        """Same as :meth:`initial_load`; nothing is merged with existing rows."""
        await self.initial_load()

    def apply_live_event(self, event: Any) -> bool:
        """Merge one push message into the rows of this owner."""
        return self._merger.apply(event, self._owner_id)

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def rows(self) -> tuple[TelemetryRecord, ...]:
        return self._store.rows

    @property
    def pagination(self) -> PaginationState:
        return self._pagination

    @property
    def subscription(self) -> SubscriptionManager:
        return self._subscription

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def status(self) -> LoadStatus:
        if self._loading_initial:
            return LoadStatus.LOADING_INITIAL
        if self._loading_more:
            return LoadStatus.LOADING_MORE
        if self._last_error is not None:
            return LoadStatus.ERRORED
        if self._completed:
            return LoadStatus.READY
        return LoadStatus.IDLE

    @property
    def is_loading_initial(self) -> bool:
        return self._loading_initial

    @property
    def is_loading_more(self) -> bool:
        return self._loading_more

    @property
    def show_spinner(self) -> bool:
        return self._loading_initial or self._loading_more

    @property
    def spinner_text(self) -> str:
        return SPINNER_TEXT_MORE if self._loading_more else SPINNER_TEXT_INITIAL

    @property
    def disable_load_more(self) -> bool:
        return self._loading_initial or self._loading_more or not self._pagination.can_fetch_more

    @property
    def disable_refresh(self) -> bool:
        return self._loading_initial

    @property
    def cached_at(self) -> datetime | None:
        return self._pagination.provenance.as_of

    @property
    def from_cache(self) -> bool:
        return self._pagination.provenance.served_from_cache

    @property
    def loaded_count(self) -> int:
        return len(self._store)

    @property
    def total_count(self) -> int:
        return self._pagination.total_count

    def view(self) -> DashboardView:
        return DashboardView(
            owner_id=self._owner_id,
            rows=self.rows,
            status=self.status,
            is_loading_initial=self.is_loading_initial,
            is_loading_more=self.is_loading_more,
            show_spinner=self.show_spinner,
            spinner_text=self.spinner_text,
            disable_load_more=self.disable_load_more,
            disable_refresh=self.disable_refresh,
            cached_at=self.cached_at,
            from_cache=self.from_cache,
            loaded_count=self.loaded_count,
            total_count=self.total_count,
        )
