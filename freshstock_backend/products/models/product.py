# products/models/product.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum
from django.utils import timezone


class Product(models.Model):
    """
    Represents a sellable perishable product.

    STOCK MODEL (IMPORTANT):
    - Product itself does NOT store stock
    - Stock lives in StockBatch (one row per received lot)
    - On-hand stock = sum of batch quantity_remaining (never cached)

    LIFECYCLE:
    - Identity is immutable; name / unit_price / status are mutable
    - Products are never physically deleted (history-preserving);
      use discontinue() / pause() / activate() instead
    """

    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", "Active"
        DISCONTINUED = "DISCONTINUED", "Discontinued"
        PAUSED = "PAUSED", "Ordering paused"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255, db_index=True)

    unit_price = models.DecimalField(max_digits=10, decimal_places=2)

    barcode = models.CharField(max_length=64, unique=True)

    units_per_package = models.PositiveIntegerField(
        default=1,
        help_text="Number of single units in one ordering package (box, crate).",
    )

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status", "name"], name="product_status_name_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.barcode})"

    def clean(self):
        if self.unit_price is None or Decimal(self.unit_price) <= 0:
            raise ValidationError({"unit_price": "unit_price must be greater than zero"})

        if not (self.barcode or "").strip():
            raise ValidationError({"barcode": "barcode is required"})

        if self.units_per_package is None or int(self.units_per_package) < 1:
            raise ValidationError({"units_per_package": "units_per_package must be at least 1"})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Products are never deleted; discontinue the product instead."
        )

    # -------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------

    def _set_status(self, status: str) -> None:
        self.status = status
        self.save(update_fields=["status", "updated_at"])

    def discontinue(self) -> None:
        self._set_status(self.Status.DISCONTINUED)

    def pause(self) -> None:
        """Stop re-ordering without discontinuing the product."""
        self._set_status(self.Status.PAUSED)

    def activate(self) -> None:
        self._set_status(self.Status.ACTIVE)

    # -------------------------------------------------
    # READ-ONLY HELPERS
    # -------------------------------------------------

    @property
    def on_hand_quantity(self) -> int:
        """Authoritative on-hand count: every batch, expired or not."""
        return (
            self.stock_batches.aggregate(total=Sum("quantity_remaining")).get("total")
            or 0
        )

    @property
    def sellable_quantity(self) -> int:
        """
        Sellable stock.

        RULES:
        - Only batches with quantity_remaining > 0
        - Only non-expired batches (expiry_date >= today)
        """
        today = timezone.localdate()

        return (
            self.stock_batches.filter(quantity_remaining__gt=0, expiry_date__gte=today)
            .aggregate(total=Sum("quantity_remaining"))
            .get("total")
            or 0
        )
