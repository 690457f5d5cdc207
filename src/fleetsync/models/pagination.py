"""Pagination cursor state for one owner's dataset."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator

from fleetsync.models.responses import FetchMode, InitialFetchResponse, PageFetchResponse


class CacheProvenance(BaseModel):
    """Whether a response came from an intermediate cache, and as of when."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    as_of: datetime | None = None
    served_from_cache: bool = False


class PaginationState(BaseModel):
    """Fetch progress for one owner's dataset.

    Instances are immutable; every transition returns a new state. The
    invariants are checked on construction:

    * ``SNAPSHOT`` mode is always exhausted and never holds a token.
    * ``mode`` is ``None`` only for the reset state before a load completes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: FetchMode | None = None
    continuation_token: str | None = None
    exhausted: bool = False
    total_count: int = 0
    provenance: CacheProvenance = CacheProvenance()

    @model_validator(mode="after")
    def _check_invariants(self) -> PaginationState:
        if self.mode == FetchMode.SNAPSHOT and (not self.exhausted or self.continuation_token is not None):
            raise ValueError("SNAPSHOT mode requires exhausted=True and no continuation token")
        if self.exhausted and self.continuation_token is not None:
            raise ValueError("an exhausted cursor cannot hold a continuation token")
        return self

    @classmethod
    def reset(cls) -> PaginationState:
        """State at the start of an initial load: no token, not exhausted."""
        return cls()

    @classmethod
    def from_initial(cls, response: InitialFetchResponse) -> PaginationState:
        provenance = CacheProvenance(as_of=response.cache_as_of, served_from_cache=response.served_from_cache)
        if response.mode == FetchMode.SNAPSHOT:
            # Snapshot responses are complete regardless of any stray token.
            return cls(
                mode=FetchMode.SNAPSHOT,
                continuation_token=None,
                exhausted=True,
                total_count=response.total_count,
                provenance=provenance,
            )
        token = response.continuation_token
        return cls(
            mode=FetchMode.PAGINATED,
            continuation_token=token,
            exhausted=token is None,
            total_count=response.total_count,
            provenance=provenance,
        )

    def advance(self, response: PageFetchResponse) -> PaginationState:
        """Consume the current token and adopt the one from *response*."""
        token = response.continuation_token
        return self.model_copy(
            update={
                "continuation_token": token,
                "exhausted": token is None,
                "provenance": CacheProvenance(
                    as_of=response.cache_as_of,
                    served_from_cache=response.served_from_cache,
                ),
            }
        )

    def mark_exhausted(self) -> PaginationState:
        return self.model_copy(update={"continuation_token": None, "exhausted": True})

    @property
    def can_fetch_more(self) -> bool:
        """Whether a page fetch may be issued from this state."""
        return self.mode == FetchMode.PAGINATED and not self.exhausted and self.continuation_token is not None
