"""
======================================================
PATH: products/migrations/0001_initial.py
======================================================
MIGRATION: INITIAL PERISHABLE INVENTORY SCHEMA

Creates:
- Product (lifecycle status, unique barcode)
- StockBatch (lot + expiry, remaining quantity, last inspection)
- StockMovement (append-only withdrawal ledger)
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("barcode", models.CharField(max_length=64, unique=True)),
                (
                    "units_per_package",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Number of single units in one ordering package (box, crate).",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("ACTIVE", "Active"),
                            ("DISCONTINUED", "Discontinued"),
                            ("PAUSED", "Ordering paused"),
                        ],
                        db_index=True,
                        default="ACTIVE",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["status", "name"], name="product_status_name_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockBatch",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "batch_number",
                    models.CharField(help_text="Supplier lot reference", max_length=128),
                ),
                ("expiry_date", models.DateField()),
                ("received_date", models.DateField()),
                (
                    "quantity_received",
                    models.PositiveIntegerField(help_text="Quantity delivered (immutable)"),
                ),
                (
                    "quantity_remaining",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Remaining quantity (service-managed only)",
                    ),
                ),
                (
                    "last_checked_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="Last physical inspection (NULL = never inspected)",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_batches",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["expiry_date", "id"],
                "indexes": [
                    models.Index(fields=["product", "expiry_date"], name="batch_product_expiry_idx"),
                    models.Index(fields=["expiry_date", "quantity_remaining"], name="batch_expiry_qty_idx"),
                    models.Index(fields=["last_checked_at"], name="batch_last_checked_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product", "batch_number"),
                        name="unique_batch_per_product",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_received__gt", 0)),
                        name="chk_stockbatch_qty_received_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_remaining__gte", 0)),
                        name="chk_stockbatch_qty_remaining_gte_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_remaining__lte", models.F("quantity_received"))),
                        name="chk_stockbatch_remaining_lte_received",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "reason",
                    models.CharField(
                        choices=[
                            ("ADJUSTMENT", "Manual Adjustment"),
                            ("WASTE", "Waste / Expired"),
                            ("DAMAGE", "Damaged"),
                            ("LOSS", "Lost / Stolen"),
                        ],
                        max_length=20,
                    ),
                ),
                ("quantity", models.PositiveIntegerField()),
                ("note", models.CharField(blank=True, default="", max_length=255)),
                (
                    "occurred_at",
                    models.DateTimeField(default=django.utils.timezone.now, editable=False),
                ),
                (
                    "batch",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_movements",
                        to="products.stockbatch",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_movements",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["occurred_at", "id"],
                "indexes": [
                    models.Index(fields=["occurred_at"], name="movement_occurred_idx"),
                    models.Index(fields=["reason"], name="movement_reason_idx"),
                    models.Index(fields=["product", "occurred_at"], name="movement_product_occ_idx"),
                    models.Index(fields=["batch", "occurred_at"], name="movement_batch_occ_idx"),
                ],
            },
        ),
    ]
