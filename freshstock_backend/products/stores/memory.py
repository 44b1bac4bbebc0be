# products/stores/memory.py

"""
IN-MEMORY STORES

Process-local implementation of the store capabilities, used by the pure
engine tests and by callers that do not want a database.

CONCURRENCY:
- atomic(product_id=X) holds a threading.Lock dedicated to X for the whole
  block; different products use different locks
- atomic() without a product holds a store-wide lock

ROLLBACK (no native transactions):
- the first write to a batch inside a block journals its prior value
- on error, each journaled batch is brought back with a compensating
  increase/decrease, batches created in the block are dropped and
  movement entries appended in the block are removed
"""

from __future__ import annotations

import threading
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date

from django.utils import timezone

from products.domain.fefo import fefo_order
from products.domain.values import BatchRecord, MovementEntry, ProductRef
from products.services.exceptions import InvalidArgumentError, NotFoundError


@dataclass
class _Journal:
    originals: dict = field(default_factory=dict)
    created: list = field(default_factory=list)
    appended: list = field(default_factory=list)


class _State:
    """Shared tables + the current thread's journal."""

    def __init__(self):
        self.products: dict = {}
        self.batches: dict = {}
        self.movements: list[MovementEntry] = []
        self.data_lock = threading.RLock()
        self.local = threading.local()
        self.next_batch_id = 1

    @property
    def journal(self) -> _Journal | None:
        return getattr(self.local, "journal", None)


class InMemoryProductCatalog:
    def __init__(self, state: _State):
        self._state = state

    def get_product(self, product_id) -> ProductRef:
        with self._state.data_lock:
            product = self._state.products.get(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def list_products(self, *, status=None) -> list[ProductRef]:
        with self._state.data_lock:
            products = list(self._state.products.values())
        if status is not None:
            products = [p for p in products if p.status == status]
        return sorted(products, key=lambda p: (p.name, str(p.id)))


class InMemoryBatchStore:
    def __init__(self, state: _State):
        self._state = state

    def _select(self, predicate) -> list[BatchRecord]:
        with self._state.data_lock:
            rows = [b for b in self._state.batches.values() if predicate(b)]
        return fefo_order(rows)

    def batches_for_product(self, product_id, *, for_update=False) -> list[BatchRecord]:
        return self._select(lambda b: b.product_id == product_id)

    def batches_expiring_on_or_before(self, cutoff) -> list[BatchRecord]:
        return self._select(lambda b: b.expiry_date <= cutoff)

    def expired_batches_with_stock(self, base_date) -> list[BatchRecord]:
        return self._select(lambda b: b.expiry_date < base_date and b.quantity > 0)

    def audit_candidates_by_expiry(self, cutoff) -> list[BatchRecord]:
        return self._select(lambda b: b.expiry_date <= cutoff and b.quantity > 0)

    def audit_candidates_by_stale_check(self, checked_before) -> list[BatchRecord]:
        return self._select(
            lambda b: b.quantity > 0
            and (b.last_checked_at is None or b.last_checked_at <= checked_before)
        )

    def get_batch(self, batch_id, *, for_update=False) -> BatchRecord:
        with self._state.data_lock:
            batch = self._state.batches.get(batch_id)
        if batch is None:
            raise NotFoundError("StockBatch", batch_id)
        return batch

    def _write(self, record: BatchRecord) -> None:
        with self._state.data_lock:
            journal = self._state.journal
            if journal is not None and record.id not in journal.created:
                journal.originals.setdefault(record.id, self._state.batches[record.id])
            self._state.batches[record.id] = record

    def save_quantity(self, record: BatchRecord) -> None:
        current = self.get_batch(record.id)
        delta = record.quantity - current.quantity
        if delta < 0:
            self._write(current.decreased(-delta))
        elif delta > 0:
            self._write(current.increased(delta))

    def set_last_checked(self, batch_id, checked_at) -> BatchRecord:
        updated = self.get_batch(batch_id).checked(checked_at)
        self._write(updated)
        return updated

    def create_batch(
        self,
        *,
        product_id,
        batch_number,
        quantity,
        expiry_date,
        received_date,
    ) -> BatchRecord:
        product = self._state.products.get(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        if expiry_date < received_date:
            raise InvalidArgumentError("expiry_date cannot be earlier than received_date")

        with self._state.data_lock:
            for existing in self._state.batches.values():
                if existing.product_id == product_id and existing.batch_number == batch_number:
                    raise InvalidArgumentError(
                        f"Batch {batch_number} already exists for {product.name}"
                    )

            record = BatchRecord(
                id=self._state.next_batch_id,
                product_id=product_id,
                product_name=product.name,
                quantity=quantity,
                quantity_received=quantity,
                expiry_date=expiry_date,
                received_date=received_date,
                batch_number=batch_number,
            )
            self._state.next_batch_id += 1
            self._state.batches[record.id] = record

            journal = self._state.journal
            if journal is not None:
                journal.created.append(record.id)
        return record

    def sellable_totals(self, today, product_ids) -> dict:
        wanted = set(product_ids)
        totals: dict = defaultdict(int)
        with self._state.data_lock:
            for b in self._state.batches.values():
                if b.product_id in wanted and b.quantity > 0 and b.expiry_date >= today:
                    totals[b.product_id] += b.quantity
        return dict(totals)


class InMemoryMovementLog:
    def __init__(self, state: _State):
        self._state = state

    def append(self, entry: MovementEntry) -> None:
        with self._state.data_lock:
            self._state.movements.append(entry)
            journal = self._state.journal
            if journal is not None:
                journal.appended.append(entry)


class InMemoryUnitOfWork:
    def __init__(self):
        self._state = _State()
        self._locks: dict = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()
        self._global_lock = threading.Lock()

        self.products = InMemoryProductCatalog(self._state)
        self.batches = InMemoryBatchStore(self._state)
        self.movements = InMemoryMovementLog(self._state)

    # -------------------------------------------------
    # SEEDING
    # -------------------------------------------------

    def add_product(self, name: str, *, status: str = "ACTIVE", product_id=None) -> ProductRef:
        product = ProductRef(id=product_id or uuid.uuid4(), name=name, status=status)
        with self._state.data_lock:
            self._state.products[product.id] = product
        return product

    def add_batch(
        self,
        product_id,
        *,
        quantity: int,
        expiry_date: date,
        received_date: date | None = None,
        quantity_received: int | None = None,
        last_checked_at=None,
        batch_number: str | None = None,
    ) -> BatchRecord:
        """Insert a batch directly, bypassing intake rules (fixtures, imports)."""
        product = self.products.get_product(product_id)
        if last_checked_at is not None and timezone.is_naive(last_checked_at):
            last_checked_at = timezone.make_aware(last_checked_at)
        with self._state.data_lock:
            batch_id = self._state.next_batch_id
            self._state.next_batch_id += 1
            record = BatchRecord(
                id=batch_id,
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                quantity_received=quantity if quantity_received is None else quantity_received,
                expiry_date=expiry_date,
                received_date=received_date or expiry_date,
                last_checked_at=last_checked_at,
                batch_number=batch_number or f"MEM-{batch_id}",
            )
            self._state.batches[batch_id] = record
        return record

    def movement_entries(self) -> list[MovementEntry]:
        with self._state.data_lock:
            return list(self._state.movements)

    # -------------------------------------------------
    # UNIT OF WORK
    # -------------------------------------------------

    def _lock_for(self, product_id):
        if product_id is None:
            return self._global_lock
        with self._locks_guard:
            return self._locks[product_id]

    @contextmanager
    def atomic(self, *, product_id=None):
        if self._state.journal is not None:
            # Nested block: the outer journal and lock already cover it, but only
            # for the same product.
            outer = getattr(self._state.local, "product_id", None)
            if product_id != outer:
                raise RuntimeError(
                    f"Cannot open a block for product {product_id} inside a block for {outer}"
                )
            yield
            return

        lock = self._lock_for(product_id)
        with lock:
            journal = _Journal()
            self._state.local.journal = journal
            self._state.local.product_id = product_id
            try:
                yield
            except BaseException:
                self._rollback(journal)
                raise
            finally:
                self._state.local.journal = None
                self._state.local.product_id = None

    def _rollback(self, journal: _Journal) -> None:
        with self._state.data_lock:
            for entry in journal.appended:
                self._state.movements.remove(entry)

            for batch_id in journal.created:
                self._state.batches.pop(batch_id, None)

            for batch_id, original in journal.originals.items():
                current = self._state.batches[batch_id]
                delta = original.quantity - current.quantity
                if delta > 0:
                    current = current.increased(delta)
                elif delta < 0:
                    current = current.decreased(-delta)
                self._state.batches[batch_id] = replace(
                    current, last_checked_at=original.last_checked_at
                )
