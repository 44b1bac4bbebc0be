# products/models/stock_movement.py

"""
INVENTORY WITHDRAWAL LEDGER

Immutable record of quantity removed from stock by an administrative
withdrawal (adjustment, waste, damage, loss).

GUARANTEES:
- Append-only (no updates, no deletes)
- Created ONCE, never edited
- Quantity is always stored positive
- batch is optional: NULL when the withdrawal cannot be attributed to a lot

Point-of-sale consumption is NOT recorded here; sales are the sales
subsystem's record.
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .product import Product
from .stock_batch import StockBatch


class StockMovement(models.Model):
    class Reason(models.TextChoices):
        ADJUSTMENT = "ADJUSTMENT", "Manual Adjustment"
        WASTE = "WASTE", "Waste / Expired"
        DAMAGE = "DAMAGE", "Damaged"
        LOSS = "LOSS", "Lost / Stolen"

    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="stock_movements"
    )
    batch = models.ForeignKey(
        StockBatch,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_movements",
    )

    reason = models.CharField(max_length=20, choices=Reason.choices)

    quantity = models.PositiveIntegerField()

    note = models.CharField(max_length=255, blank=True, default="")

    occurred_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        ordering = ["occurred_at", "id"]
        indexes = [
            models.Index(fields=["occurred_at"], name="movement_occurred_idx"),
            models.Index(fields=["reason"], name="movement_reason_idx"),
            models.Index(fields=["product", "occurred_at"], name="movement_product_occ_idx"),
            models.Index(fields=["batch", "occurred_at"], name="movement_batch_occ_idx"),
        ]

    def clean(self):
        if self.quantity is None or self.quantity <= 0:
            raise ValidationError("quantity must be greater than zero")

        if self.batch_id and self.product_id:
            batch_product_id = (
                StockBatch.objects.filter(id=self.batch_id)
                .values_list("product_id", flat=True)
                .first()
            )
            if batch_product_id is not None and batch_product_id != self.product_id:
                raise ValidationError("Batch does not belong to product")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("StockMovement records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "StockMovement records are immutable and cannot be deleted"
        )

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | {self.reason} | {self.quantity}"
