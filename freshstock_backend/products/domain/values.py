# products/domain/values.py

"""
IMMUTABLE INVENTORY VALUES

Engines never mutate a batch in place: a decrement produces a NEW
BatchRecord which the store persists. This keeps allocation planning pure
and makes rollback a matter of restoring the previous values.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any

from products.services.exceptions import BatchQuantityError


def _require_positive_int(amount, *, label: str) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise BatchQuantityError(f"{label} amount must be a positive integer")
    return amount


@dataclass(frozen=True)
class ProductRef:
    id: Any
    name: str
    status: str = "ACTIVE"


@dataclass(frozen=True)
class BatchRecord:
    """
    Snapshot of one batch.

    INVARIANT: 0 <= quantity <= quantity_received
    """

    id: Any
    product_id: Any
    product_name: str
    quantity: int
    quantity_received: int
    expiry_date: date
    received_date: date
    last_checked_at: datetime | None = None
    batch_number: str = ""

    def __post_init__(self):
        if self.quantity < 0 or self.quantity > self.quantity_received:
            raise BatchQuantityError(
                f"Batch {self.id}: quantity {self.quantity} outside 0..{self.quantity_received}"
            )

    def increased(self, amount: int) -> BatchRecord:
        _require_positive_int(amount, label="increase")
        if self.quantity + amount > self.quantity_received:
            raise BatchQuantityError(
                f"Cannot increase beyond quantity received. "
                f"Remaining={self.quantity}, received={self.quantity_received}, amount={amount}"
            )
        return replace(self, quantity=self.quantity + amount)

    def decreased(self, amount: int) -> BatchRecord:
        _require_positive_int(amount, label="decrease")
        if amount > self.quantity:
            raise BatchQuantityError(
                f"Cannot reduce stock below zero. Remaining={self.quantity}, amount={amount}"
            )
        return replace(self, quantity=self.quantity - amount)

    def checked(self, checked_at: datetime) -> BatchRecord:
        return replace(self, last_checked_at=checked_at)

    def is_expired(self, as_of: date) -> bool:
        return self.expiry_date < as_of

    def days_until_expiry(self, as_of: date) -> int:
        return (self.expiry_date - as_of).days


@dataclass(frozen=True)
class BatchAllocation:
    """One (batch, quantity taken) pair; `batch` is the state AFTER the take."""

    batch: BatchRecord
    taken: int


@dataclass(frozen=True)
class MovementEntry:
    product_id: Any
    batch_id: Any
    reason: str
    quantity: int
    note: str = ""
    occurred_at: datetime | None = None


class AuditReason(str, Enum):
    EXPIRED = "EXPIRED"
    EXPIRING_SOON = "EXPIRING_SOON"
    NEVER_CHECKED = "NEVER_CHECKED"
    STALE_CHECK = "STALE_CHECK"


@dataclass(frozen=True)
class AuditRecommendation:
    batch_id: Any
    product_id: Any
    product_name: str
    expiry_date: date
    quantity: int
    last_checked_at: datetime | None
    score: int
    reasons: tuple[AuditReason, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ExpiringBatch:
    batch: BatchRecord
    days_to_expiry: int


@dataclass(frozen=True)
class DisposalResult:
    base_date: date
    batch_count: int
    total_disposed: int


@dataclass(frozen=True)
class StockSummary:
    product_id: Any
    product_name: str
    status: str
    sellable_quantity: int
