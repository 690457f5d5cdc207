"""Backend fetch response contracts.

The dashboard backend reports the same concepts under a couple of key
spellings depending on the endpoint (``snapshot`` vs ``vehicles`` for rows,
``nextToken`` vs ``continuationToken`` for the cursor). Both are accepted.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from fleetsync.models._base import FleetBaseModel, UtcTimestamp
from fleetsync.models.telemetry import TelemetryRecord

_logger = logging.getLogger(__name__)


class FetchMode(StrEnum):
    SNAPSHOT = "SNAPSHOT"
    PAGINATED = "PAGINATED"


def _normalize_token(value: Any) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def _usable_rows(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    rows: list[Any] = []
    for item in value:
        if isinstance(item, TelemetryRecord):
            rows.append(item)
        elif isinstance(item, dict) and isinstance(item.get("vin"), str) and item["vin"].strip():
            rows.append(item)
    if len(rows) != len(value):
        _logger.debug("Dropped %d row(s) without a usable vin", len(value) - len(rows))
    return rows


class PageFetchResponse(FleetBaseModel):
    """Response of the page-fetch operation."""

    records: list[TelemetryRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("vehicles", "records"),
    )
    continuation_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("nextToken", "continuationToken", "continuation_token"),
    )
    cache_as_of: UtcTimestamp = Field(
        default=None,
        validation_alias=AliasChoices("cachedAt", "cacheAsOf", "cache_as_of"),
    )
    served_from_cache: bool = Field(
        default=False,
        validation_alias=AliasChoices("fromCache", "servedFromCache", "served_from_cache"),
    )

    @field_validator("records", mode="before")
    @classmethod
    def _drop_unusable_rows(cls, value: Any) -> Any:
        return _usable_rows(value)

    @field_validator("continuation_token", mode="before")
    @classmethod
    def _clean_token(cls, value: Any) -> str | None:
        return _normalize_token(value)

    @field_validator("served_from_cache", mode="before")
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes"}
        return bool(value)


class InitialFetchResponse(PageFetchResponse):
    """Response of the initial-fetch operation."""

    mode: FetchMode = FetchMode.PAGINATED
    total_count: int = Field(default=0, validation_alias=AliasChoices("totalCount", "total_count"))
    records: list[TelemetryRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("snapshot", "records"),
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> FetchMode:
        # Anything that is not an explicit snapshot is served page by page.
        if isinstance(value, str) and value.strip().upper() == FetchMode.SNAPSHOT:
            return FetchMode.SNAPSHOT
        return FetchMode.PAGINATED

    @field_validator("total_count", mode="before")
    @classmethod
    def _count(cls, value: Any) -> int:
        try:
            return max(int(value), 0)
        except (TypeError, ValueError):
            return 0
