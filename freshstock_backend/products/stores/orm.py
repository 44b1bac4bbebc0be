# products/stores/orm.py

"""
DJANGO ORM STORES

Atomicity:
- atomic() is transaction.atomic(); a raised error rolls back every
  decrement and movement row written inside it
- batches_for_product(for_update=True) takes row locks with
  select_for_update(), so concurrent allocations on the same product
  serialize on the batch rows while other products proceed

All quantity writes still go through StockBatch.increase()/decrease(), so
model-level invariants hold even for ORM-backed engines.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q, Sum

from products.domain.values import BatchRecord, MovementEntry, ProductRef
from products.models import Product, StockBatch, StockMovement
from products.services.exceptions import (
    BatchQuantityError,
    InvalidArgumentError,
    NotFoundError,
)


def _to_record(batch: StockBatch) -> BatchRecord:
    return BatchRecord(
        id=batch.id,
        product_id=batch.product_id,
        product_name=batch.product.name,
        quantity=int(batch.quantity_remaining or 0),
        quantity_received=int(batch.quantity_received),
        expiry_date=batch.expiry_date,
        received_date=batch.received_date,
        last_checked_at=batch.last_checked_at,
        batch_number=batch.batch_number,
    )


def _to_product_ref(product: Product) -> ProductRef:
    return ProductRef(id=product.id, name=product.name, status=product.status)


def _batches():
    return StockBatch.objects.select_related("product").order_by("expiry_date", "id")


class DjangoProductCatalog:
    def get_product(self, product_id) -> ProductRef:
        try:
            product = Product.objects.get(pk=product_id)
        except (Product.DoesNotExist, ValidationError, ValueError):
            raise NotFoundError("Product", product_id)
        return _to_product_ref(product)

    def list_products(self, *, status=None) -> list[ProductRef]:
        qs = Product.objects.all()
        if status is not None:
            qs = qs.filter(status=status)
        return [_to_product_ref(p) for p in qs.order_by("name", "id")]


class DjangoBatchStore:
    def batches_for_product(self, product_id, *, for_update=False) -> list[BatchRecord]:
        qs = _batches().filter(product_id=product_id)
        if for_update:
            qs = qs.select_for_update(of=("self",))
        return [_to_record(b) for b in qs]

    def batches_expiring_on_or_before(self, cutoff) -> list[BatchRecord]:
        return [_to_record(b) for b in _batches().filter(expiry_date__lte=cutoff)]

    def expired_batches_with_stock(self, base_date) -> list[BatchRecord]:
        qs = _batches().filter(expiry_date__lt=base_date, quantity_remaining__gt=0)
        return [_to_record(b) for b in qs]

    def audit_candidates_by_expiry(self, cutoff) -> list[BatchRecord]:
        qs = _batches().filter(expiry_date__lte=cutoff, quantity_remaining__gt=0)
        return [_to_record(b) for b in qs]

    def audit_candidates_by_stale_check(self, checked_before) -> list[BatchRecord]:
        qs = _batches().filter(
            Q(last_checked_at__isnull=True) | Q(last_checked_at__lte=checked_before),
            quantity_remaining__gt=0,
        )
        return [_to_record(b) for b in qs]

    def _get_instance(self, batch_id, *, for_update=False) -> StockBatch:
        qs = StockBatch.objects.select_related("product")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        try:
            return qs.get(pk=batch_id)
        except (StockBatch.DoesNotExist, ValidationError, ValueError, TypeError):
            raise NotFoundError("StockBatch", batch_id)

    def get_batch(self, batch_id, *, for_update=False) -> BatchRecord:
        return _to_record(self._get_instance(batch_id, for_update=for_update))

    def save_quantity(self, record: BatchRecord) -> None:
        batch = self._get_instance(record.id, for_update=True)
        delta = record.quantity - int(batch.quantity_remaining or 0)
        try:
            if delta < 0:
                batch.decrease(-delta)
            elif delta > 0:
                batch.increase(delta)
        except ValidationError as exc:
            raise BatchQuantityError(" ".join(exc.messages)) from exc

    def set_last_checked(self, batch_id, checked_at) -> BatchRecord:
        batch = self._get_instance(batch_id, for_update=True)
        batch.mark_checked(checked_at)
        return _to_record(batch)

    def create_batch(
        self,
        *,
        product_id,
        batch_number,
        quantity,
        expiry_date,
        received_date,
    ) -> BatchRecord:
        batch = StockBatch(
            product_id=product_id,
            batch_number=batch_number,
            quantity_received=quantity,
            quantity_remaining=quantity,
            expiry_date=expiry_date,
            received_date=received_date,
        )
        try:
            batch.save()
        except ValidationError as exc:
            raise InvalidArgumentError(" ".join(exc.messages)) from exc
        return _to_record(StockBatch.objects.select_related("product").get(pk=batch.pk))

    def sellable_totals(self, today, product_ids) -> dict:
        rows = (
            StockBatch.objects.filter(
                product_id__in=list(product_ids),
                quantity_remaining__gt=0,
                expiry_date__gte=today,
            )
            .values("product_id")
            .annotate(total=Sum("quantity_remaining"))
        )
        return {row["product_id"]: int(row["total"] or 0) for row in rows}


class DjangoMovementLog:
    def append(self, entry: MovementEntry) -> None:
        fields = {
            "product_id": entry.product_id,
            "batch_id": entry.batch_id,
            "reason": entry.reason,
            "quantity": entry.quantity,
            "note": entry.note or "",
        }
        if entry.occurred_at is not None:
            fields["occurred_at"] = entry.occurred_at
        StockMovement(**fields).save()


class DjangoUnitOfWork:
    def __init__(self):
        self.products = DjangoProductCatalog()
        self.batches = DjangoBatchStore()
        self.movements = DjangoMovementLog()

    def atomic(self, *, product_id=None):
        # Row locks taken inside the block scope the serialization to one product.
        return transaction.atomic()
