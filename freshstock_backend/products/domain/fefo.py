# products/domain/fefo.py

"""
FEFO ALLOCATION PLANNING (PURE)

First-Expired, First-Out: given a product's batches, decide how much to take
from each so that stock nearest expiry leaves first.

The planner never writes anything. It returns the allocations it WOULD make
plus the shortfall; the service decides whether to persist or raise.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from .values import BatchAllocation, BatchRecord


def fefo_order(batches: Iterable[BatchRecord]) -> list[BatchRecord]:
    """Expiry ascending; ties keep insertion order (batch id)."""
    return sorted(batches, key=lambda b: (b.expiry_date, b.id))


def plan_allocation(
    batches: Iterable[BatchRecord],
    requested: int,
    *,
    as_of: date | None = None,
    exclude_expired: bool = False,
) -> tuple[list[BatchAllocation], int]:
    """
    Returns (allocations, shortfall).

    RULES:
    - batches with quantity <= 0 are never counted
    - when exclude_expired, batches with expiry_date < as_of are skipped
    - each eligible batch gives min(remaining, still_needed)
    """
    if exclude_expired and as_of is None:
        raise ValueError("as_of is required when exclude_expired is set")

    needed = requested
    allocations: list[BatchAllocation] = []

    for batch in fefo_order(batches):
        if needed <= 0:
            break
        if batch.quantity <= 0:
            continue
        if exclude_expired and batch.is_expired(as_of):
            continue

        taken = min(batch.quantity, needed)
        allocations.append(BatchAllocation(batch=batch.decreased(taken), taken=taken))
        needed -= taken

    return allocations, needed
