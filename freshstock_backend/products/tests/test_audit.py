# products/tests/test_audit.py

from datetime import date, datetime, timezone as dt_timezone

from django.test import SimpleTestCase

from products.domain.audit_scoring import score_batch
from products.domain.values import AuditReason
from products.services.exceptions import InvalidArgumentError, NotFoundError
from products.services.stock_audit import mark_checked, recommend_audits
from products.stores.memory import InMemoryUnitOfWork


def _utc(*args):
    return datetime(*args, tzinfo=dt_timezone.utc)


class AuditRecommendationTests(SimpleTestCase):
    """
    Audit ranking on the in-memory store.

    GUARANTEES:
    - Expired > expiring soon > stale, with additive never-checked points
    - Each batch appears at most once
    - Empty / drained batches are never recommended
    """

    BASE_DATE = date(2024, 6, 1)
    NOW = _utc(2024, 6, 1, 12, 0)

    def setUp(self):
        self.uow = InMemoryUnitOfWork()
        self.product = self.uow.add_product("Greek Yogurt 500g")

        self.a = self.uow.add_batch(
            self.product.id,
            quantity=5,
            expiry_date=date(2024, 5, 20),
            last_checked_at=_utc(2024, 5, 25, 9, 0),
        )
        self.b = self.uow.add_batch(
            self.product.id,
            quantity=4,
            expiry_date=date(2024, 6, 10),
        )
        self.c = self.uow.add_batch(
            self.product.id,
            quantity=7,
            expiry_date=date(2024, 9, 1),
            last_checked_at=_utc(2024, 4, 1, 9, 0),
        )
        # Fresh and recently checked: no reason to look at it.
        self.uow.add_batch(
            self.product.id,
            quantity=9,
            expiry_date=date(2024, 12, 1),
            last_checked_at=_utc(2024, 5, 30, 9, 0),
        )
        # Expired but drained: never a candidate.
        self.uow.add_batch(
            self.product.id,
            quantity=0,
            quantity_received=3,
            expiry_date=date(2024, 5, 1),
        )

    def _recommend(self, **overrides):
        kwargs = {
            "base_date": self.BASE_DATE,
            "expiring_within_days": 14,
            "stale_after_days": 30,
            "limit": 10,
            "now": self.NOW,
            "uow": self.uow,
        }
        kwargs.update(overrides)
        return recommend_audits(**kwargs)

    def test_scores_reasons_and_order(self):
        ranked = self._recommend()

        self.assertEqual([r.batch_id for r in ranked], [self.a.id, self.b.id, self.c.id])
        self.assertEqual([r.score for r in ranked], [100, 81, 20])
        self.assertEqual(ranked[0].reasons, (AuditReason.EXPIRED,))
        self.assertEqual(
            ranked[1].reasons,
            (AuditReason.EXPIRING_SOON, AuditReason.NEVER_CHECKED),
        )
        self.assertEqual(ranked[2].reasons, (AuditReason.STALE_CHECK,))

    def test_recommendation_carries_batch_details(self):
        top = self._recommend()[0]

        self.assertEqual(top.product_id, self.product.id)
        self.assertEqual(top.product_name, "Greek Yogurt 500g")
        self.assertEqual(top.expiry_date, date(2024, 5, 20))
        self.assertEqual(top.quantity, 5)
        self.assertEqual(top.last_checked_at, _utc(2024, 5, 25, 9, 0))

    def test_limit_truncates_after_sorting(self):
        ranked = self._recommend(limit=2)
        self.assertEqual([r.batch_id for r in ranked], [self.a.id, self.b.id])

    def test_non_positive_limit_returns_empty(self):
        self.assertEqual(self._recommend(limit=0), [])
        self.assertEqual(self._recommend(limit=-3), [])

    def test_batch_matching_both_queries_appears_once(self):
        ranked = self._recommend()
        ids = [r.batch_id for r in ranked]
        self.assertEqual(len(ids), len(set(ids)))

    def test_negative_windows_rejected(self):
        with self.assertRaises(InvalidArgumentError):
            self._recommend(expiring_within_days=-1)
        with self.assertRaises(InvalidArgumentError):
            self._recommend(stale_after_days=-1)

    def test_ties_break_by_earliest_expiry(self):
        uow = InMemoryUnitOfWork()
        product = uow.add_product("Whole Milk 1L")
        late = uow.add_batch(product.id, quantity=1, expiry_date=date(2024, 12, 1))
        early = uow.add_batch(product.id, quantity=1, expiry_date=date(2024, 11, 1))

        ranked = self._recommend(uow=uow)
        self.assertEqual([r.batch_id for r in ranked], [early.id, late.id])
        self.assertEqual({r.score for r in ranked}, {40})

    def test_recommending_is_read_only(self):
        before = {b.id: b for b in self.uow.batches.batches_for_product(self.product.id)}
        self._recommend()
        after = {b.id: b for b in self.uow.batches.batches_for_product(self.product.id)}
        self.assertEqual(before, after)


class MarkCheckedTests(SimpleTestCase):
    def setUp(self):
        self.uow = InMemoryUnitOfWork()
        self.product = self.uow.add_product("Sourdough Loaf")
        self.batch = self.uow.add_batch(
            self.product.id,
            quantity=6,
            expiry_date=date(2024, 9, 1),
            last_checked_at=_utc(2024, 4, 1, 9, 0),
        )

    def test_check_off_removes_stale_reason(self):
        mark_checked(batch_id=self.batch.id, checked_at=_utc(2024, 5, 31, 8, 0), uow=self.uow)

        ranked = recommend_audits(
            base_date=date(2024, 6, 1),
            expiring_within_days=14,
            stale_after_days=30,
            limit=10,
            now=_utc(2024, 6, 1, 12, 0),
            uow=self.uow,
        )
        self.assertEqual(ranked, [])

    def test_latest_check_off_wins(self):
        mark_checked(batch_id=self.batch.id, checked_at=_utc(2024, 5, 1, 8, 0), uow=self.uow)
        updated = mark_checked(
            batch_id=self.batch.id, checked_at=_utc(2024, 5, 20, 8, 0), uow=self.uow
        )

        self.assertEqual(updated.last_checked_at, _utc(2024, 5, 20, 8, 0))
        self.assertEqual(
            self.uow.batches.get_batch(self.batch.id).last_checked_at,
            _utc(2024, 5, 20, 8, 0),
        )

    def test_unknown_batch_is_not_found(self):
        with self.assertRaises(NotFoundError) as ctx:
            mark_checked(batch_id=424242, uow=self.uow)
        self.assertEqual(ctx.exception.kind, "StockBatch")
        self.assertEqual(ctx.exception.identity, 424242)


class ScoreBatchTests(SimpleTestCase):
    def test_expiring_soon_points_floor_at_zero(self):
        uow = InMemoryUnitOfWork()
        product = uow.add_product("Whole Milk 1L")
        batch = uow.add_batch(
            product.id,
            quantity=1,
            expiry_date=date(2024, 8, 1),
            last_checked_at=_utc(2024, 6, 1, 9, 0),
        )

        score, reasons = score_batch(
            batch,
            base_date=date(2024, 6, 1),
            expiring_within_days=90,
            stale_after_days=30,
        )
        self.assertEqual((score, reasons), (0, (AuditReason.EXPIRING_SOON,)))


class NaiveTimestampTests(SimpleTestCase):
    """Naive inspection timestamps are stored in the current time zone."""

    def setUp(self):
        self.uow = InMemoryUnitOfWork()
        self.product = self.uow.add_product("Whole Milk 1L")

    def test_naive_check_off_is_made_aware(self):
        batch = self.uow.add_batch(self.product.id, quantity=3, expiry_date=date(2024, 9, 1))

        updated = mark_checked(batch_id=batch.id, checked_at=datetime(2024, 4, 1, 9, 0), uow=self.uow)
        self.assertEqual(updated.last_checked_at, _utc(2024, 4, 1, 9, 0))

        ranked = recommend_audits(
            base_date=date(2024, 6, 1),
            expiring_within_days=14,
            stale_after_days=30,
            limit=10,
            now=_utc(2024, 6, 1, 12, 0),
            uow=self.uow,
        )
        self.assertEqual([(r.batch_id, r.score) for r in ranked], [(batch.id, 20)])
        self.assertEqual(ranked[0].reasons, (AuditReason.STALE_CHECK,))

    def test_naive_seed_timestamp_is_made_aware(self):
        batch = self.uow.add_batch(
            self.product.id,
            quantity=3,
            expiry_date=date(2024, 9, 1),
            last_checked_at=datetime(2024, 4, 1, 9, 0),
        )
        self.assertEqual(batch.last_checked_at, _utc(2024, 4, 1, 9, 0))


class AuditBoundaryTests(SimpleTestCase):
    """
    GUARANTEES:
    - Window edges are inclusive
    - A batch expiring ON base_date is expiring soon, not expired
    - A candidate that earns no reason is dropped
    """

    BASE_DATE = date(2024, 6, 1)

    def setUp(self):
        self.uow = InMemoryUnitOfWork()
        self.product = self.uow.add_product("Greek Yogurt 500g")
        self.recent = _utc(2024, 5, 30, 9, 0)

    def _recommend(self, now):
        return recommend_audits(
            base_date=self.BASE_DATE,
            expiring_within_days=14,
            stale_after_days=30,
            limit=10,
            now=now,
            uow=self.uow,
        )

    def test_window_edges(self):
        today = self.uow.add_batch(
            self.product.id, quantity=1, expiry_date=date(2024, 6, 1), last_checked_at=self.recent
        )
        edge = self.uow.add_batch(
            self.product.id, quantity=1, expiry_date=date(2024, 6, 15), last_checked_at=self.recent
        )
        stale30 = self.uow.add_batch(
            self.product.id,
            quantity=1,
            expiry_date=date(2024, 12, 1),
            last_checked_at=_utc(2024, 5, 2, 9, 0),
        )

        ranked = self._recommend(_utc(2024, 6, 1, 12, 0))

        self.assertEqual(
            [(r.batch_id, r.score) for r in ranked],
            [(today.id, 50), (edge.id, 36), (stale30.id, 20)],
        )
        self.assertEqual(ranked[0].reasons, (AuditReason.EXPIRING_SOON,))
        self.assertEqual(ranked[1].reasons, (AuditReason.EXPIRING_SOON,))
        self.assertEqual(ranked[2].reasons, (AuditReason.STALE_CHECK,))

    def test_candidate_without_reason_is_dropped(self):
        # Stale relative to `now`, but only 22 days old relative to base_date.
        self.uow.add_batch(
            self.product.id,
            quantity=1,
            expiry_date=date(2024, 12, 1),
            last_checked_at=_utc(2024, 5, 10, 9, 0),
        )

        self.assertEqual(self._recommend(_utc(2024, 6, 20, 12, 0)), [])
