from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from fleetsync.client import FleetSyncClient
from fleetsync.config import FleetSyncConfig
from fleetsync.controller import LoadStatus
from fleetsync.exceptions import FleetSyncError
from fleetsync.models.responses import InitialFetchResponse, PageFetchResponse


@dataclass
class StaticBackend:
    rows: list[dict[str, Any]] = field(default_factory=list)
    owners: list[str] = field(default_factory=list)

    async def initial_fetch(self, owner_id: str, *, nonce: str, page_size: int | None = None) -> InitialFetchResponse:
        self.owners.append(owner_id)
        return InitialFetchResponse.model_validate({"mode": "SNAPSHOT", "snapshot": self.rows})

    async def page_fetch(
        self,
        owner_id: str,
        continuation_token: str,
        *,
        nonce: str,
        page_size: int | None = None,
    ) -> PageFetchResponse:
        raise AssertionError("snapshot datasets are never paged")


def test_dashboard_requires_context() -> None:
    client = FleetSyncClient(FleetSyncConfig())

    with pytest.raises(FleetSyncError):
        client.dashboard("ACC-1")


@pytest.mark.asyncio
async def test_open_dashboard_loads_rows() -> None:
    backend = StaticBackend(rows=[{"vin": "V1"}, {"vin": "V2"}])

    async with FleetSyncClient(FleetSyncConfig(), backend=backend) as client:
        dashboard = await client.open_dashboard("ACC-1")

        assert dashboard.status == LoadStatus.READY
        assert [row.vin for row in dashboard.rows] == ["V1", "V2"]
        assert backend.owners == ["ACC-1"]


@pytest.mark.asyncio
async def test_controllers_are_scoped_per_owner() -> None:
    backend = StaticBackend(rows=[{"vin": "V1"}])

    async with FleetSyncClient(FleetSyncConfig(), backend=backend) as client:
        first = client.dashboard("ACC-1")
        second = client.dashboard("ACC-2")
        await first.initial_load()

        assert first.owner_id == "ACC-1"
        assert second.owner_id == "ACC-2"
        assert second.rows == ()
        assert second.status == LoadStatus.IDLE
