"""Dashboard backend operations: initial fetch and page fetch.

Both operations carry a client nonce whose only purpose is to stop an
intermediate cache from answering with a stale page. It is not used for
request deduplication.
"""

from __future__ import annotations

import secrets
import time
from typing import Any, Protocol

from pydantic import ValidationError

from fleetsync._constants import INITIAL_FETCH_ENDPOINT, PAGE_FETCH_ENDPOINT
from fleetsync._transport import Transport
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncApiError
from fleetsync.models.responses import InitialFetchResponse, PageFetchResponse


def make_nonce() -> str:
    """Unique-per-call cache-busting value: epoch ms plus random suffix."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class DashboardBackend(Protocol):
    """Backend operations consumed by the dashboard controller."""

    async def initial_fetch(
        self,
        owner_id: str,
        *,
        nonce: str,
        page_size: int | None = None,
    ) -> InitialFetchResponse: ...

    async def page_fetch(
        self,
        owner_id: str,
        continuation_token: str,
        *,
        nonce: str,
        page_size: int | None = None,
    ) -> PageFetchResponse: ...


def build_initial_params(owner_id: str, *, nonce: str, page_size: int | None = None) -> dict[str, str]:
    params: dict[str, str] = {"ownerId": owner_id, "clientNonce": nonce}
    if page_size is not None:
        params["pageSize"] = str(page_size)
    return params


def build_page_params(
    owner_id: str,
    continuation_token: str,
    *,
    nonce: str,
    page_size: int | None = None,
) -> dict[str, str]:
    params = build_initial_params(owner_id, nonce=nonce, page_size=page_size)
    params["pageToken"] = continuation_token
    return params


def _require_object(endpoint: str, body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise FleetSyncApiError(f"{endpoint} returned {type(body).__name__}, expected an object", endpoint=endpoint)
    return body


def parse_initial_response(body: Any) -> InitialFetchResponse:
    """Validate an initial-fetch body.

    Raises
    ------
    FleetSyncApiError
        If the body is not an object or does not match the contract.
    """
    payload = _require_object(INITIAL_FETCH_ENDPOINT, body)
    try:
        return InitialFetchResponse.model_validate(payload)
    except ValidationError as exc:
        raise FleetSyncApiError(f"Invalid initial fetch response: {exc}", endpoint=INITIAL_FETCH_ENDPOINT) from exc


def parse_page_response(body: Any) -> PageFetchResponse:
    """Validate a page-fetch body.

    Raises
    ------
    FleetSyncApiError
        If the body is not an object or does not match the contract.
    """
    payload = _require_object(PAGE_FETCH_ENDPOINT, body)
    try:
        return PageFetchResponse.model_validate(payload)
    except ValidationError as exc:
        raise FleetSyncApiError(f"Invalid page fetch response: {exc}", endpoint=PAGE_FETCH_ENDPOINT) from exc


class HttpDashboardBackend:
    """:class:`DashboardBackend` over a :class:`Transport`."""

    def __init__(self, config: FleetSyncConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    def _page_size(self, page_size: int | None) -> int | None:
        return page_size if page_size is not None else self._config.page_size

    async def initial_fetch(
        self,
        owner_id: str,
        *,
        nonce: str,
        page_size: int | None = None,
    ) -> InitialFetchResponse:
        params = build_initial_params(owner_id, nonce=nonce, page_size=self._page_size(page_size))
        body = await self._transport.get_json(INITIAL_FETCH_ENDPOINT, params)
        return parse_initial_response(body)

    async def page_fetch(
        self,
        owner_id: str,
        continuation_token: str,
        *,
        nonce: str,
        page_size: int | None = None,
    ) -> PageFetchResponse:
        params = build_page_params(owner_id, continuation_token, nonce=nonce, page_size=self._page_size(page_size))
        body = await self._transport.get_json(PAGE_FETCH_ENDPOINT, params)
        return parse_page_response(body)
