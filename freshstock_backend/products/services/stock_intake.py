# products/services/stock_intake.py

"""
STOCK INTAKE (APPLICATION SERVICE)

Purpose:
- The ONLY way a batch comes into existence.
- Enforces creation-time rules before the store sees the row:
    * quantity is a positive integer
    * received_date <= expiry_date
    * DISCONTINUED products cannot receive stock
- A missing batch_number gets a generated INTAKE-XXXXXXXXXX reference.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date

from django.utils import timezone

from products.domain.values import BatchRecord
from products.models import Product
from products.stores import UnitOfWork, get_default_unit_of_work

from .exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

BATCH_NUMBER_MAX_LENGTH = 128


def _require_positive_int(value, *, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{field_name} must be an integer")
    if value <= 0:
        raise InvalidArgumentError(f"{field_name} must be greater than zero")
    return value


def _require_date(value, *, field_name: str) -> date:
    # datetime is a date subclass; a timestamp here is a caller mistake.
    if not isinstance(value, date) or hasattr(value, "hour"):
        raise InvalidArgumentError(f"{field_name} must be a date")
    return value


def receive_batch(
    *,
    product,
    quantity,
    expiry_date,
    received_date=None,
    batch_number: str | None = None,
    uow: UnitOfWork | None = None,
) -> BatchRecord:
    uow = uow or get_default_unit_of_work()

    qty = _require_positive_int(quantity, field_name="quantity")
    expiry_date = _require_date(expiry_date, field_name="expiry_date")
    received_date = _require_date(
        received_date or timezone.localdate(), field_name="received_date"
    )

    if expiry_date < received_date:
        raise InvalidArgumentError("expiry_date cannot be earlier than received_date")

    bn = (batch_number or "").strip()
    if not bn:
        bn = f"INTAKE-{uuid.uuid4().hex[:10].upper()}"
    if len(bn) > BATCH_NUMBER_MAX_LENGTH:
        raise InvalidArgumentError(
            f"batch_number must be at most {BATCH_NUMBER_MAX_LENGTH} characters"
        )

    product_ref = uow.products.get_product(getattr(product, "id", product))
    if product_ref.status == Product.Status.DISCONTINUED:
        raise InvalidArgumentError(
            f"{product_ref.name} is discontinued and cannot receive stock"
        )

    with uow.atomic(product_id=product_ref.id):
        batch = uow.batches.create_batch(
            product_id=product_ref.id,
            batch_number=bn,
            quantity=qty,
            expiry_date=expiry_date,
            received_date=received_date,
        )

    logger.info(
        "Batch received",
        extra={
            "product_id": str(product_ref.id),
            "batch_id": batch.id,
            "batch_number": bn,
            "quantity": qty,
            "expiry_date": expiry_date.isoformat(),
        },
    )
    return batch
