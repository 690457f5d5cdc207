"""Base model for dashboard backend payloads.

Every fleetsync payload model inherits from :class:`FleetBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase backend keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that strips placeholder values
  (``""``, NaN) so the field default is used.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from fleetsync.ingestion.normalize import parse_timestamp

_SENTINELS = frozenset({"", "NaN", "nan", "null"})


def _coerce_timestamp(value: Any) -> datetime | None:
    # Unparseable provenance timestamps degrade to None rather than
    # rejecting the whole payload.
    return parse_timestamp(value)


UtcTimestamp = Annotated[datetime | None, BeforeValidator(_coerce_timestamp)]
"""Annotated type that coerces epoch ints (seconds or ms) and ISO strings to UTC datetimes."""


class FleetBaseModel(BaseModel):
    """Base for backend and push payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True, repr=False)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = FleetBaseModel._clean_dict(values)
        # Keep an explicitly passed raw= (kwargs construction); otherwise
        # stash the payload we were validated from.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
