# products/models/stock_batch.py

"""
STOCK BATCH (DELIVERY-BASED INVENTORY)

Represents ONE received lot of a product with its own expiry date.

CANONICAL MODEL:
- quantity_received, expiry_date, received_date and product are immutable
  after creation
- quantity_remaining is mutated ONLY via increase() / decrease()
- last_checked_at is written ONLY via mark_checked() (NULL = never inspected)
- Batches are never deleted; a drained batch stays for audit history
- Primary key is an auto-increment integer: FEFO ties are broken by
  insertion order (expiry_date, id)
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from .product import Product


class StockBatch(models.Model):
    IMMUTABLE_FIELDS = ("product_id", "quantity_received", "expiry_date", "received_date")

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="stock_batches",
    )

    batch_number = models.CharField(
        max_length=128,
        help_text="Supplier lot reference",
    )

    expiry_date = models.DateField()

    received_date = models.DateField()

    quantity_received = models.PositiveIntegerField(
        help_text="Quantity delivered (immutable)"
    )

    quantity_remaining = models.PositiveIntegerField(
        default=0,
        help_text="Remaining quantity (service-managed only)",
    )

    last_checked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last physical inspection (NULL = never inspected)",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["expiry_date", "id"]
        indexes = [
            models.Index(fields=["product", "expiry_date"], name="batch_product_expiry_idx"),
            models.Index(fields=["expiry_date", "quantity_remaining"], name="batch_expiry_qty_idx"),
            models.Index(fields=["last_checked_at"], name="batch_last_checked_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "batch_number"],
                name="unique_batch_per_product",
            ),
            models.CheckConstraint(
                condition=Q(quantity_received__gt=0),
                name="chk_stockbatch_qty_received_gt_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__gte=0),
                name="chk_stockbatch_qty_remaining_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__lte=F("quantity_received")),
                name="chk_stockbatch_remaining_lte_received",
            ),
        ]

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def clean(self):
        if self.quantity_received is None or self.quantity_received <= 0:
            raise ValidationError(
                {"quantity_received": "quantity_received must be greater than zero"}
            )

        if self.quantity_remaining is None or self.quantity_remaining < 0:
            raise ValidationError(
                {"quantity_remaining": "quantity_remaining cannot be negative"}
            )

        if self.quantity_remaining > self.quantity_received:
            raise ValidationError(
                {"quantity_remaining": "quantity_remaining cannot exceed quantity_received"}
            )

        if not self.expiry_date:
            raise ValidationError({"expiry_date": "expiry_date is required"})

        if not self.received_date:
            raise ValidationError({"received_date": "received_date is required"})

        # Creation-time rule only: the calendar moves on, the batch does not.
        if self._state.adding and self.expiry_date < self.received_date:
            raise ValidationError(
                {"expiry_date": "expiry_date cannot be earlier than received_date"}
            )

    # -------------------------------------------------
    # IMMUTABILITY
    # -------------------------------------------------

    def save(self, *args, **kwargs):
        if not self._state.adding:
            original = (
                StockBatch.objects.filter(pk=self.pk)
                .values(*self.IMMUTABLE_FIELDS)
                .first()
            )
            if original is not None:
                for field in self.IMMUTABLE_FIELDS:
                    if getattr(self, field) != original[field]:
                        raise ValidationError({field.removesuffix("_id"): f"{field} is immutable"})

        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Stock batches are audit artifacts and cannot be deleted."
        )

    # -------------------------------------------------
    # THE ONLY MUTATION PATHS
    # -------------------------------------------------

    def increase(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("increase amount must be a positive integer")

        if self.quantity_remaining + amount > self.quantity_received:
            raise ValidationError(
                f"Cannot increase beyond quantity received. "
                f"Remaining={self.quantity_remaining}, received={self.quantity_received}, amount={amount}"
            )

        self.quantity_remaining += amount
        self.save(update_fields=["quantity_remaining"])

    def decrease(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("decrease amount must be a positive integer")

        if amount > self.quantity_remaining:
            raise ValidationError(
                f"Cannot reduce stock below zero. "
                f"Remaining={self.quantity_remaining}, amount={amount}"
            )

        self.quantity_remaining -= amount
        self.save(update_fields=["quantity_remaining"])

    def mark_checked(self, checked_at) -> None:
        self.last_checked_at = checked_at
        self.save(update_fields=["last_checked_at"])

    # -------------------------------------------------
    # READ-ONLY HELPERS
    # -------------------------------------------------

    @property
    def is_dormant(self) -> bool:
        return int(self.quantity_remaining or 0) == 0

    def is_expired(self, as_of) -> bool:
        return self.expiry_date < as_of

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | Batch {self.batch_number} | exp {self.expiry_date}"
