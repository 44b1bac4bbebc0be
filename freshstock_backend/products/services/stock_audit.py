# products/services/stock_audit.py

"""
AUDIT RECOMMENDATION ENGINE

Answers "which batches should someone physically look at next?".

Candidates (quantity > 0 only):
1) expiring: expiry_date <= base_date + expiring_within_days
2) stale:    last_checked_at IS NULL OR last_checked_at <= now - stale_after_days

A batch matching both queries appears once. Scoring and ordering live in
products.domain.audit_scoring.

Read-only: recommend_audits() never writes. mark_checked() is the ONLY
writer of StockBatch.last_checked_at.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from django.utils import timezone

from products.conf import inventory_setting
from products.domain.audit_scoring import rank_candidates
from products.domain.values import AuditRecommendation, BatchRecord
from products.stores import UnitOfWork, get_default_unit_of_work

from .exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)


def _require_window(value, *, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{field_name} must be an integer")
    if value < 0:
        raise InvalidArgumentError(f"{field_name} must not be negative")
    return value


def recommend_audits(
    *,
    base_date: date | None = None,
    expiring_within_days: int | None = None,
    stale_after_days: int | None = None,
    limit: int | None = None,
    now: datetime | None = None,
    uow: UnitOfWork | None = None,
) -> list[AuditRecommendation]:
    """
    Ranked inspection list, highest score first (ties: earliest expiry).

    Unset arguments fall back to FRESHSTOCK settings; base_date defaults to
    today and `now` (the staleness reference) to timezone.now().
    """
    if expiring_within_days is None:
        expiring_within_days = inventory_setting("AUDIT_EXPIRING_WITHIN_DAYS")
    if stale_after_days is None:
        stale_after_days = inventory_setting("AUDIT_STALE_AFTER_DAYS")
    if limit is None:
        limit = inventory_setting("AUDIT_LIMIT")

    expiring_within_days = _require_window(expiring_within_days, field_name="expiring_within_days")
    stale_after_days = _require_window(stale_after_days, field_name="stale_after_days")
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidArgumentError("limit must be an integer")

    if limit <= 0:
        return []

    base_date = base_date or timezone.localdate()
    now = now or timezone.now()
    uow = uow or get_default_unit_of_work()

    expiry_cutoff = base_date + timedelta(days=expiring_within_days)
    checked_before = now - timedelta(days=stale_after_days)

    candidates: list[BatchRecord] = []
    candidates.extend(uow.batches.audit_candidates_by_expiry(expiry_cutoff))
    candidates.extend(uow.batches.audit_candidates_by_stale_check(checked_before))

    ranked = rank_candidates(
        candidates,
        base_date=base_date,
        expiring_within_days=expiring_within_days,
        stale_after_days=stale_after_days,
        limit=limit,
    )

    logger.debug(
        "Audit recommendations computed",
        extra={
            "base_date": base_date.isoformat(),
            "candidates": len(candidates),
            "returned": len(ranked),
        },
    )
    return ranked


def mark_checked(
    *,
    batch_id,
    checked_at: datetime | None = None,
    uow: UnitOfWork | None = None,
) -> BatchRecord:
    """Record a physical inspection; raises NotFoundError for an unknown batch."""
    uow = uow or get_default_unit_of_work()
    checked_at = checked_at or timezone.now()
    if timezone.is_naive(checked_at):
        checked_at = timezone.make_aware(checked_at)

    batch = uow.batches.get_batch(batch_id)
    with uow.atomic(product_id=batch.product_id):
        updated = uow.batches.set_last_checked(batch_id, checked_at)

    logger.info(
        "Batch checked",
        extra={"batch_id": batch_id, "checked_at": checked_at.isoformat()},
    )
    return updated
