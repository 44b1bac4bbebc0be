# products/tests/test_services.py

import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.exceptions import (
    InsufficientStockError,
    InvalidArgumentError,
    NotFoundError,
)
from products.services.inventory import (
    dispose_expired_batches,
    get_stock_summary,
    list_expiring_batches,
    list_product_batches,
    list_stock_summaries,
)
from products.services.stock_audit import mark_checked, recommend_audits
from products.services.stock_fefo import consume_for_sale, withdraw_stock
from products.services.stock_intake import receive_batch
from products.stores.orm import DjangoUnitOfWork


class InventoryServiceTestCase(TestCase):
    def setUp(self):
        self.today = timezone.localdate()
        self.product = Product.objects.create(
            name="Whole Milk 1L",
            barcode="4006381333931",
            unit_price=Decimal("1.29"),
        )

    def receive(self, quantity, *, expires_in, received_ago=30, product=None, **kwargs):
        return receive_batch(
            product=product or self.product,
            quantity=quantity,
            expiry_date=self.today + timedelta(days=expires_in),
            received_date=self.today - timedelta(days=received_ago),
            **kwargs,
        )

    def remaining(self, record):
        return StockBatch.objects.get(pk=record.id).quantity_remaining


class StockIntakeTests(InventoryServiceTestCase):
    """
    GUARANTEES:
    - A received batch starts full
    - Creation rules are enforced before anything is written
    """

    def test_receive_batch_starts_full(self):
        record = self.receive(12, expires_in=5, batch_number="LOT-A")

        batch = StockBatch.objects.get(pk=record.id)
        self.assertEqual(batch.quantity_received, 12)
        self.assertEqual(batch.quantity_remaining, 12)
        self.assertEqual(batch.batch_number, "LOT-A")
        self.assertIsNone(batch.last_checked_at)

    def test_missing_batch_number_is_generated(self):
        record = self.receive(1, expires_in=5)
        self.assertTrue(record.batch_number.startswith("INTAKE-"))

    def test_received_date_defaults_to_today(self):
        record = receive_batch(
            product=self.product,
            quantity=1,
            expiry_date=self.today + timedelta(days=3),
        )
        self.assertEqual(record.received_date, self.today)

    def test_expiry_before_received_rejected(self):
        with self.assertRaises(InvalidArgumentError):
            self.receive(5, expires_in=-40, received_ago=30)

        self.assertFalse(StockBatch.objects.exists())

    def test_non_positive_quantity_rejected(self):
        for bad in (0, -2, True, "5"):
            with self.subTest(quantity=bad):
                with self.assertRaises(InvalidArgumentError):
                    self.receive(bad, expires_in=5)

    def test_discontinued_product_cannot_receive(self):
        self.product.discontinue()

        with self.assertRaises(InvalidArgumentError):
            self.receive(5, expires_in=5)

    def test_duplicate_batch_number_rejected(self):
        self.receive(5, expires_in=5, batch_number="LOT-A")

        with self.assertRaises(InvalidArgumentError):
            self.receive(5, expires_in=6, batch_number="LOT-A")

    def test_unknown_product_not_found(self):
        with self.assertRaises(NotFoundError):
            receive_batch(
                product=uuid.uuid4(),
                quantity=1,
                expiry_date=self.today + timedelta(days=3),
            )


class OrmAllocationTests(InventoryServiceTestCase):
    """
    FEFO engine on the Django store.

    GUARANTEES:
    - Earliest expiry leaves first
    - Withdrawals write one StockMovement per batch touched
    - Sales write no StockMovement
    - Failure leaves the database exactly as it was
    """

    def setUp(self):
        super().setUp()
        self.late = self.receive(5, expires_in=10, batch_number="LOT-LATE")
        self.soon = self.receive(3, expires_in=5, batch_number="LOT-SOON")
        self.expired = self.receive(4, expires_in=-1, batch_number="LOT-OLD")

    def test_withdrawal_takes_fefo_and_logs_each_batch(self):
        allocations = withdraw_stock(
            product=self.product,
            quantity=6,
            reason=StockMovement.Reason.DAMAGE,
            note="freezer failure",
        )

        self.assertEqual(
            [(a.batch.id, a.taken) for a in allocations],
            [(self.expired.id, 4), (self.soon.id, 2)],
        )
        self.assertEqual(self.remaining(self.expired), 0)
        self.assertEqual(self.remaining(self.soon), 1)
        self.assertEqual(self.remaining(self.late), 5)

        movements = list(StockMovement.objects.order_by("id"))
        self.assertEqual(
            [(m.batch_id, m.quantity, m.reason, m.note) for m in movements],
            [
                (self.expired.id, 4, "DAMAGE", "freezer failure"),
                (self.soon.id, 2, "DAMAGE", "freezer failure"),
            ],
        )

    def test_sale_skips_expired_and_writes_no_movements(self):
        allocations = consume_for_sale(product=self.product, quantity=4)

        self.assertEqual(
            [(a.batch.id, a.taken) for a in allocations],
            [(self.soon.id, 3), (self.late.id, 1)],
        )
        self.assertEqual(self.remaining(self.expired), 4)
        self.assertFalse(StockMovement.objects.exists())

    def test_sale_shortage_ignores_expired_stock(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            consume_for_sale(product=self.product, quantity=9)

        self.assertEqual((ctx.exception.requested, ctx.exception.shortfall), (9, 1))
        self.assertEqual(self.remaining(self.soon), 3)
        self.assertEqual(self.remaining(self.late), 5)

    def test_withdrawal_shortage_changes_nothing(self):
        with self.assertRaises(InsufficientStockError):
            withdraw_stock(product=self.product, quantity=13)

        self.assertEqual(self.remaining(self.expired), 4)
        self.assertEqual(self.remaining(self.soon), 3)
        self.assertEqual(self.remaining(self.late), 5)
        self.assertFalse(StockMovement.objects.exists())

    def test_failed_log_write_rolls_back_transaction(self):
        uow = DjangoUnitOfWork()
        real_log = uow.movements
        calls = {"n": 0}

        class FailingLog:
            def append(self, entry):
                calls["n"] += 1
                if calls["n"] == 2:
                    raise RuntimeError("ledger unavailable")
                real_log.append(entry)

        uow.movements = FailingLog()

        with self.assertRaises(RuntimeError):
            withdraw_stock(product=self.product, quantity=6, uow=uow)

        self.assertEqual(self.remaining(self.expired), 4)
        self.assertEqual(self.remaining(self.soon), 3)
        self.assertFalse(StockMovement.objects.exists())

    def test_unknown_product_not_found(self):
        with self.assertRaises(NotFoundError):
            withdraw_stock(product=uuid.uuid4(), quantity=1)

    def test_note_length_is_validated(self):
        with self.assertRaises(InvalidArgumentError):
            withdraw_stock(product=self.product, quantity=1, note="x" * 256)


class OrmAuditTests(InventoryServiceTestCase):
    def test_recommendations_and_check_off(self):
        base_date = self.today
        now = timezone.now()

        expired = self.receive(2, expires_in=-3)
        soon = self.receive(2, expires_in=9)
        fresh = self.receive(2, expires_in=200)
        mark_checked(batch_id=expired.id, checked_at=now - timedelta(days=1))
        mark_checked(batch_id=fresh.id, checked_at=now - timedelta(days=1))

        ranked = recommend_audits(
            base_date=base_date,
            expiring_within_days=14,
            stale_after_days=30,
            limit=10,
            now=now,
        )

        self.assertEqual([r.batch_id for r in ranked], [expired.id, soon.id])
        self.assertEqual([r.score for r in ranked], [100, 81])

        mark_checked(batch_id=soon.id, checked_at=now)
        ranked = recommend_audits(
            base_date=base_date,
            expiring_within_days=14,
            stale_after_days=30,
            limit=10,
            now=now,
        )
        self.assertEqual([r.score for r in ranked], [100, 41])

    def test_settings_supply_default_windows(self):
        self.receive(2, expires_in=200)

        ranked = recommend_audits()
        self.assertEqual(len(ranked), 1)
        self.assertEqual(ranked[0].score, 40)

    def test_mark_checked_persists_timestamp(self):
        record = self.receive(2, expires_in=30)
        checked_at = datetime(2024, 5, 20, 8, 0, tzinfo=dt_timezone.utc)

        mark_checked(batch_id=record.id, checked_at=checked_at)

        self.assertEqual(StockBatch.objects.get(pk=record.id).last_checked_at, checked_at)

    def test_mark_checked_unknown_batch(self):
        with self.assertRaises(NotFoundError):
            mark_checked(batch_id=987654)


class InventoryReportingTests(InventoryServiceTestCase):
    """
    GUARANTEES:
    - Disposal drains only expired batches that still hold stock
    - Summaries count sellable stock only
    """

    def test_list_expiring_batches(self):
        soon = self.receive(2, expires_in=3)
        expired = self.receive(2, expires_in=-2)
        self.receive(2, expires_in=60)

        rows = list_expiring_batches(cutoff_date=self.today + timedelta(days=7))

        self.assertEqual([r.batch.id for r in rows], [expired.id, soon.id])
        self.assertEqual([r.days_to_expiry for r in rows], [-2, 3])

    def test_dispose_expired_batches(self):
        old_a = self.receive(4, expires_in=-5)
        old_b = self.receive(2, expires_in=-1)
        drained = self.receive(3, expires_in=-2)
        fresh = self.receive(7, expires_in=10)
        StockBatch.objects.get(pk=drained.id).decrease(3)

        result = dispose_expired_batches(base_date=self.today)

        self.assertEqual(result.base_date, self.today)
        self.assertEqual(result.batch_count, 2)
        self.assertEqual(result.total_disposed, 6)
        self.assertEqual(self.remaining(old_a), 0)
        self.assertEqual(self.remaining(old_b), 0)
        self.assertEqual(self.remaining(fresh), 7)

        waste = StockMovement.objects.filter(reason=StockMovement.Reason.WASTE)
        self.assertEqual(
            sorted((m.batch_id, m.quantity) for m in waste),
            sorted([(old_a.id, 4), (old_b.id, 2)]),
        )
        self.assertTrue(all(m.note == "Expired stock bulk disposal" for m in waste))

    def test_dispose_is_idempotent(self):
        self.receive(4, expires_in=-5)
        dispose_expired_batches(base_date=self.today)

        result = dispose_expired_batches(base_date=self.today)
        self.assertEqual((result.batch_count, result.total_disposed), (0, 0))

    def test_stock_summary_counts_sellable_only(self):
        self.receive(4, expires_in=5)
        self.receive(6, expires_in=-1)

        summary = get_stock_summary(product=self.product)
        self.assertEqual(summary.sellable_quantity, 4)
        self.assertEqual(summary.status, Product.Status.ACTIVE)

    def test_list_stock_summaries_filters_by_status(self):
        empty = Product.objects.create(
            name="Sourdough Loaf", barcode="4001686301265", unit_price=Decimal("3.10")
        )
        gone = Product.objects.create(
            name="Baby Spinach 200g", barcode="4311596435326", unit_price=Decimal("1.99")
        )
        gone.discontinue()
        self.receive(4, expires_in=5)

        active = list_stock_summaries()
        self.assertEqual(
            [(s.product_name, s.sellable_quantity) for s in active],
            [("Sourdough Loaf", 0), ("Whole Milk 1L", 4)],
        )

        everything = list_stock_summaries(status=None)
        self.assertEqual({s.product_id for s in everything}, {self.product.id, empty.id, gone.id})

    def test_list_product_batches_in_fefo_order(self):
        later = self.receive(1, expires_in=20)
        sooner = self.receive(1, expires_in=2)

        self.assertEqual(
            [b.id for b in list_product_batches(product=self.product)],
            [sooner.id, later.id],
        )


class SeedCommandTests(TestCase):
    def test_seed_products_is_repeatable(self):
        out = StringIO()
        call_command("seed_products", batches=2, seed=7, stdout=out)
        call_command("seed_products", batches=2, seed=7, stdout=out)

        self.assertEqual(Product.objects.count(), 5)
        self.assertEqual(StockBatch.objects.count(), 10)
        self.assertIn("Seeded 5 products", out.getvalue())
