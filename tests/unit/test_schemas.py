from __future__ import annotations

import pytest
from pydantic import ValidationError


def test_mutation_result_from_rowcount() -> None:
    from inventory_store.schemas import MutationOutcome, MutationResult

    applied = MutationResult.from_rowcount(1, "Part", 7)
    missing = MutationResult.from_rowcount(0, "Part", 8)
    assert applied.found and applied.outcome is MutationOutcome.APPLIED
    assert not missing.found
    assert missing.outcome is MutationOutcome.NOT_FOUND
    # Drivers report -1 when the count is unknown.
    assert MutationResult.from_rowcount(-1, "Part", 9).rows == 0


def test_paginated_request_bounds() -> None:
    from inventory_store.schemas import PaginatedRequest, SortDirection

    request = PaginatedRequest()
    assert (request.page, request.results, request.direction) == (1, 20, SortDirection.ASCENDING)
    with pytest.raises(ValidationError):
        PaginatedRequest(page=0)
    with pytest.raises(ValidationError):
        PaginatedRequest(results=1001)
    with pytest.raises(ValidationError):
        PaginatedRequest(sort="name")
