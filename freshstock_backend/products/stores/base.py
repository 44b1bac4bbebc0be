# products/stores/base.py

"""
STORE CAPABILITIES

The engines depend on these protocols only. A store is a set of
capabilities (catalog lookup, batch queries/writes, movement appends)
bundled in a UnitOfWork that also owns the atomic scope.

CONTRACT FOR atomic(product_id=...):
- Everything written inside the block is all-or-nothing
- Concurrent blocks for the SAME product are serialized
- Blocks for different products do not contend
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any, Iterable, Protocol

from products.domain.values import BatchRecord, MovementEntry, ProductRef


class ProductCatalog(Protocol):
    def get_product(self, product_id) -> ProductRef:
        """Raises NotFoundError when the product does not exist."""
        ...

    def list_products(self, *, status: str | None = None) -> list[ProductRef]:
        ...


class BatchStore(Protocol):
    def batches_for_product(self, product_id, *, for_update: bool = False) -> list[BatchRecord]:
        """All batches of a product, expiry ascending, ties by insertion order."""
        ...

    def batches_expiring_on_or_before(self, cutoff: date) -> list[BatchRecord]:
        ...

    def expired_batches_with_stock(self, base_date: date) -> list[BatchRecord]:
        """expiry_date < base_date AND quantity > 0."""
        ...

    def audit_candidates_by_expiry(self, cutoff: date) -> list[BatchRecord]:
        """expiry_date <= cutoff AND quantity > 0."""
        ...

    def audit_candidates_by_stale_check(self, checked_before: datetime) -> list[BatchRecord]:
        """(last_checked_at IS NULL OR last_checked_at <= checked_before) AND quantity > 0."""
        ...

    def get_batch(self, batch_id, *, for_update: bool = False) -> BatchRecord:
        """Raises NotFoundError when the batch does not exist."""
        ...

    def save_quantity(self, record: BatchRecord) -> None:
        """Persist record.quantity for an existing batch."""
        ...

    def set_last_checked(self, batch_id, checked_at: datetime) -> BatchRecord:
        ...

    def create_batch(
        self,
        *,
        product_id,
        batch_number: str,
        quantity: int,
        expiry_date: date,
        received_date: date,
    ) -> BatchRecord:
        ...

    def sellable_totals(self, today: date, product_ids: Iterable[Any]) -> dict[Any, int]:
        """Sum of quantity over batches with quantity > 0 and expiry_date >= today."""
        ...


class MovementLog(Protocol):
    def append(self, entry: MovementEntry) -> None:
        ...


class UnitOfWork(Protocol):
    products: ProductCatalog
    batches: BatchStore
    movements: MovementLog

    def atomic(self, *, product_id=None) -> AbstractContextManager:
        ...
