"""HTTP transport for the dashboard backend."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from fleetsync._constants import USER_AGENT
from fleetsync._redact import redact_for_log
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> Any:
        ...


class HttpTransport:
    """aiohttp-backed transport that issues GET requests and decodes JSON."""

    def __init__(self, config: FleetSyncConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
            # Intermediate caches must not answer for us; the nonce in the
            # query string is the second line of that.
            "cache-control": "no-cache",
        }
        if self._config.access_token:
            headers["authorization"] = f"Bearer {self._config.access_token}"
        return headers

    async def get_json(self, endpoint: str, params: Mapping[str, str]) -> Any:
        """GET *endpoint* with *params* and return the decoded JSON body.

        Raises
        ------
        FleetSyncTransportError
            On network errors, timeouts, non-200 responses or invalid JSON.
        """
        url = f"{self._config.base_url.rstrip('/')}{endpoint}"
        _logger.debug("GET %s params=%s", url, redact_for_log(dict(params)))

        try:
            async with self._http.get(url, params=dict(params), headers=self._headers(), timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise FleetSyncTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except FleetSyncTransportError:
            raise
        except asyncio.TimeoutError as exc:
            raise FleetSyncTransportError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise FleetSyncTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FleetSyncTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

        _logger.debug("Response from %s: %s", endpoint, redact_for_log(body, max_string=128))
        return body
