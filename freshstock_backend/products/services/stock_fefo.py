# products/services/stock_fefo.py

"""
FEFO STOCK ENGINE

Purpose:
- Draw stock down batch by batch, earliest expiry first (ties: oldest batch).
- Two callers:
    * withdraw_stock(): administrative withdrawal (adjustment, waste, damage,
      loss); every batch touched gets ONE StockMovement row
    * consume_for_sale(): point-of-sale consumption; expired batches are
      skipped and NO movement rows are written

HARD RULES:
- Quantities are integer units; bools, floats and strings are rejected
- All-or-nothing: a shortage raises InsufficientStockError and leaves
  every batch exactly as it was
- The scan runs inside uow.atomic(product_id=...) on batches read for
  update, so two allocations on the same product never interleave
"""

from __future__ import annotations

import logging
from datetime import date

from django.utils import timezone

from products.conf import inventory_setting
from products.domain.fefo import plan_allocation
from products.domain.values import BatchAllocation, MovementEntry
from products.models import StockMovement
from products.stores import UnitOfWork, get_default_unit_of_work

from .exceptions import InsufficientStockError, InvalidArgumentError

logger = logging.getLogger(__name__)

NOTE_MAX_LENGTH = StockMovement._meta.get_field("note").max_length


# ============================================================
# INPUT NORMALIZATION
# ============================================================

def _require_quantity(value) -> int:
    """
    Quantity guard.
    HARD RULE: quantities are whole positive integer units.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError("quantity must be a whole integer unit")

    if value <= 0:
        raise InvalidArgumentError("quantity must be greater than zero")

    ceiling = int(inventory_setting("MAX_ALLOCATION_QUANTITY"))
    if value > ceiling:
        raise InvalidArgumentError(f"quantity must not exceed {ceiling}")

    return value


def _require_reason(reason) -> str:
    value = getattr(reason, "value", reason)
    if value not in StockMovement.Reason.values:
        raise InvalidArgumentError(f"Unknown movement reason: {reason!r}")
    return value


def _require_note(note) -> str:
    note = (note or "").strip()
    if len(note) > NOTE_MAX_LENGTH:
        raise InvalidArgumentError(f"note must be at most {NOTE_MAX_LENGTH} characters")
    return note


def _product_id(product):
    return getattr(product, "id", product)


# ============================================================
# ALLOCATION
# ============================================================

def allocate(
    *,
    product,
    quantity,
    as_of_date: date | None = None,
    exclude_expired: bool = False,
    reason=None,
    note: str = "",
    uow: UnitOfWork | None = None,
) -> list[BatchAllocation]:
    """
    Allocate `quantity` units of `product` across its batches, FEFO.

    Returns the (batch, taken) pairs in consumption order; each batch value
    carries its quantity AFTER the take.

    reason:
    - None  -> no movement rows (sale consumption)
    - given -> one movement row per batch touched
    """
    qty = _require_quantity(quantity)
    reason_value = _require_reason(reason) if reason is not None else None
    note = _require_note(note)
    uow = uow or get_default_unit_of_work()

    if exclude_expired and as_of_date is None:
        as_of_date = timezone.localdate()

    pid = _product_id(product)
    product_ref = uow.products.get_product(pid)

    with uow.atomic(product_id=product_ref.id):
        batches = uow.batches.batches_for_product(product_ref.id, for_update=True)
        allocations, shortfall = plan_allocation(
            batches,
            qty,
            as_of=as_of_date,
            exclude_expired=exclude_expired,
        )

        if shortfall > 0:
            logger.warning(
                "Insufficient stock",
                extra={
                    "product_id": str(product_ref.id),
                    "requested": qty,
                    "shortfall": shortfall,
                    "exclude_expired": exclude_expired,
                },
            )
            raise InsufficientStockError(qty, shortfall, product_name=product_ref.name)

        now = timezone.now()
        for allocation in allocations:
            uow.batches.save_quantity(allocation.batch)
            if reason_value is not None:
                uow.movements.append(
                    MovementEntry(
                        product_id=product_ref.id,
                        batch_id=allocation.batch.id,
                        reason=reason_value,
                        quantity=allocation.taken,
                        note=note,
                        occurred_at=now,
                    )
                )

    logger.info(
        "Stock allocated",
        extra={
            "product_id": str(product_ref.id),
            "quantity": qty,
            "batches": [a.batch.id for a in allocations],
            "reason": reason_value,
        },
    )
    return allocations


def withdraw_stock(
    *,
    product,
    quantity,
    reason=StockMovement.Reason.ADJUSTMENT,
    note: str = "",
    uow: UnitOfWork | None = None,
) -> list[BatchAllocation]:
    """
    Administrative withdrawal: expired batches are NOT skipped (disposing of
    expired stock is a withdrawal too) and every batch touched is logged.
    """
    if reason is None:
        raise InvalidArgumentError("reason is required for a withdrawal")

    return allocate(
        product=product,
        quantity=quantity,
        exclude_expired=False,
        reason=reason,
        note=note,
        uow=uow,
    )


def consume_for_sale(
    *,
    product,
    quantity,
    sale_date: date | None = None,
    uow: UnitOfWork | None = None,
) -> list[BatchAllocation]:
    """
    Point-of-sale consumption: never sells a batch expired on `sale_date`
    (default today); writes no movement rows.
    """
    return allocate(
        product=product,
        quantity=quantity,
        as_of_date=sale_date or timezone.localdate(),
        exclude_expired=True,
        uow=uow,
    )
