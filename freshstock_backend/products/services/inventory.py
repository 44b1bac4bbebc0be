# products/services/inventory.py

"""
======================================================
PATH: products/services/inventory.py
======================================================
INVENTORY REPORTING + DISPOSAL

Purpose:
- Expiry report: batches expiring on or before a cut-off date.
- Bulk disposal: drain every expired batch that still holds stock,
  writing one WASTE movement per batch.
- On-hand summaries: sellable quantity per product.
- Batch listing for one product (FEFO order).

Rules:
- "days_to_expiry" in the expiry report is relative to TODAY and is for
  display only; audit scoring uses its own base_date.
- Sellable = quantity_remaining > 0 AND expiry_date >= today.
- Disposal runs one atomic block per product, so a failure on one product
  never leaves a half-drained product behind.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date

from django.utils import timezone

from products.conf import inventory_setting
from products.domain.values import (
    BatchRecord,
    DisposalResult,
    ExpiringBatch,
    MovementEntry,
    StockSummary,
)
from products.models import Product, StockMovement
from products.stores import UnitOfWork, get_default_unit_of_work

logger = logging.getLogger(__name__)


# ============================================================
# EXPIRY REPORT
# ============================================================

def list_expiring_batches(
    *,
    cutoff_date: date,
    uow: UnitOfWork | None = None,
) -> list[ExpiringBatch]:
    uow = uow or get_default_unit_of_work()
    today = timezone.localdate()

    return [
        ExpiringBatch(batch=b, days_to_expiry=b.days_until_expiry(today))
        for b in uow.batches.batches_expiring_on_or_before(cutoff_date)
    ]


# ============================================================
# BULK DISPOSAL
# ============================================================

def dispose_expired_batches(
    *,
    base_date: date | None = None,
    note: str | None = None,
    uow: UnitOfWork | None = None,
) -> DisposalResult:
    """
    Drain every batch with expiry_date < base_date and stock left.

    Each batch is re-read under the product's lock before it is drained, so
    a concurrent allocation cannot be double-counted.
    """
    uow = uow or get_default_unit_of_work()
    base_date = base_date or timezone.localdate()
    note = inventory_setting("DISPOSAL_NOTE") if note is None else note

    by_product: dict = defaultdict(list)
    for batch in uow.batches.expired_batches_with_stock(base_date):
        by_product[batch.product_id].append(batch.id)

    batch_count = 0
    total_disposed = 0
    now = timezone.now()

    for product_id, batch_ids in by_product.items():
        with uow.atomic(product_id=product_id):
            locked = {
                b.id: b for b in uow.batches.batches_for_product(product_id, for_update=True)
            }
            for batch_id in batch_ids:
                batch = locked.get(batch_id)
                if batch is None or batch.quantity <= 0:
                    continue

                disposed = batch.quantity
                uow.batches.save_quantity(batch.decreased(disposed))
                uow.movements.append(
                    MovementEntry(
                        product_id=product_id,
                        batch_id=batch_id,
                        reason=StockMovement.Reason.WASTE.value,
                        quantity=disposed,
                        note=note,
                        occurred_at=now,
                    )
                )
                batch_count += 1
                total_disposed += disposed

    logger.info(
        "Expired stock disposed",
        extra={
            "base_date": base_date.isoformat(),
            "batch_count": batch_count,
            "total_disposed": total_disposed,
        },
    )
    return DisposalResult(
        base_date=base_date,
        batch_count=batch_count,
        total_disposed=total_disposed,
    )


# ============================================================
# SUMMARIES
# ============================================================

def get_stock_summary(*, product, uow: UnitOfWork | None = None) -> StockSummary:
    uow = uow or get_default_unit_of_work()
    product_ref = uow.products.get_product(getattr(product, "id", product))
    totals = uow.batches.sellable_totals(timezone.localdate(), [product_ref.id])

    return StockSummary(
        product_id=product_ref.id,
        product_name=product_ref.name,
        status=product_ref.status,
        sellable_quantity=totals.get(product_ref.id, 0),
    )


def list_stock_summaries(
    *,
    status: str | None = Product.Status.ACTIVE,
    uow: UnitOfWork | None = None,
) -> list[StockSummary]:
    """status=None lists every product regardless of lifecycle."""
    uow = uow or get_default_unit_of_work()
    products = uow.products.list_products(status=status)
    totals = uow.batches.sellable_totals(timezone.localdate(), [p.id for p in products])

    return [
        StockSummary(
            product_id=p.id,
            product_name=p.name,
            status=p.status,
            sellable_quantity=totals.get(p.id, 0),
        )
        for p in products
    ]


def list_product_batches(*, product, uow: UnitOfWork | None = None) -> list[BatchRecord]:
    uow = uow or get_default_unit_of_work()
    product_ref = uow.products.get_product(getattr(product, "id", product))
    return uow.batches.batches_for_product(product_ref.id)
