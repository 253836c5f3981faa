from __future__ import annotations

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from inventory_store.records import Record


R = TypeVar("R", bound=Record)


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class UserContext(StrictModel):
    # None means "no identity": the ownership filter lets every row through.
    user_id: int | None = None


class SortDirection(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


class PaginatedRequest(StrictModel):
    page: int = Field(default=1, ge=1)
    results: int = Field(default=20, ge=1, le=1000)
    order_by: str | None = None
    direction: SortDirection = SortDirection.ASCENDING


class PaginatedResponse(StrictModel, Generic[R]):
    total_items: int
    page_size: int
    page: int
    items: list[R]


class SearchResult(StrictModel, Generic[R]):
    # Lower is a better match: exact, then prefix, then substring.
    rank: int
    result: R


class ConnectionResponse(StrictModel):
    is_success: bool
    database_exists: bool
    errors: list[str] = Field(default_factory=list)


class MutationOutcome(str, Enum):
    APPLIED = "applied"
    NOT_FOUND = "not_found"


class MutationResult(StrictModel):
    """Outcome of an update or delete by key, decided by the affected-row count."""

    outcome: MutationOutcome
    entity: str
    key: Any
    rows: int = 0

    @classmethod
    def from_rowcount(cls, rowcount: int, entity: str, key: Any) -> MutationResult:
        outcome = MutationOutcome.APPLIED if rowcount > 0 else MutationOutcome.NOT_FOUND
        return cls(outcome=outcome, entity=entity, key=key, rows=max(rowcount, 0))

    @property
    def found(self) -> bool:
        return self.outcome is MutationOutcome.APPLIED
