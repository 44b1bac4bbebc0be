# products/domain/audit_scoring.py

"""
AUDIT PRIORITY SCORING (PURE)

Scores a batch for physical inspection. All day arithmetic is relative to
base_date so a report for a given date is reproducible.

SCORE TABLE:
- EXPIRED        expiry_date < base_date                      +100
- EXPIRING_SOON  0 <= days_until_expiry <= expiring_within    +max(0, 50 - days_until)
- NEVER_CHECKED  last_checked_at is NULL                      +40
- STALE_CHECK    days since last check >= stale_after_days    +20

EXPIRED and EXPIRING_SOON are mutually exclusive, as are NEVER_CHECKED and
STALE_CHECK.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from django.utils import timezone

from .values import AuditReason, AuditRecommendation, BatchRecord

EXPIRED_POINTS = 100
EXPIRING_SOON_CEILING = 50
NEVER_CHECKED_POINTS = 40
STALE_CHECK_POINTS = 20


def _checked_on(checked_at: datetime) -> date:
    if timezone.is_aware(checked_at):
        return timezone.localtime(checked_at).date()
    return checked_at.date()


def score_batch(
    batch: BatchRecord,
    *,
    base_date: date,
    expiring_within_days: int,
    stale_after_days: int,
) -> tuple[int, tuple[AuditReason, ...]]:
    score = 0
    reasons: list[AuditReason] = []

    days_until = batch.days_until_expiry(base_date)
    if days_until < 0:
        score += EXPIRED_POINTS
        reasons.append(AuditReason.EXPIRED)
    elif days_until <= expiring_within_days:
        score += max(0, EXPIRING_SOON_CEILING - days_until)
        reasons.append(AuditReason.EXPIRING_SOON)

    if batch.last_checked_at is None:
        score += NEVER_CHECKED_POINTS
        reasons.append(AuditReason.NEVER_CHECKED)
    elif (base_date - _checked_on(batch.last_checked_at)).days >= stale_after_days:
        score += STALE_CHECK_POINTS
        reasons.append(AuditReason.STALE_CHECK)

    return score, tuple(reasons)


def rank_candidates(
    candidates: Iterable[BatchRecord],
    *,
    base_date: date,
    expiring_within_days: int,
    stale_after_days: int,
    limit: int,
) -> list[AuditRecommendation]:
    """
    Merge, score, drop reason-less, sort, truncate.

    Candidates may contain the same batch twice (it matched both queries);
    the merge keys by batch id.
    """
    if limit <= 0:
        return []

    merged: dict = {}
    for batch in candidates:
        merged[batch.id] = batch

    ranked: list[AuditRecommendation] = []
    for batch in merged.values():
        score, reasons = score_batch(
            batch,
            base_date=base_date,
            expiring_within_days=expiring_within_days,
            stale_after_days=stale_after_days,
        )
        if not reasons:
            continue
        ranked.append(
            AuditRecommendation(
                batch_id=batch.id,
                product_id=batch.product_id,
                product_name=batch.product_name,
                expiry_date=batch.expiry_date,
                quantity=batch.quantity,
                last_checked_at=batch.last_checked_at,
                score=score,
                reasons=reasons,
            )
        )

    ranked.sort(key=lambda r: (-r.score, r.expiry_date, r.batch_id))
    return ranked[:limit]
