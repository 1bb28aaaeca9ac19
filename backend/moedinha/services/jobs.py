from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from moedinha.core.context import Clock, RequestContext, system_clock
from moedinha.models.org import Org
from moedinha.services.alerts import generate_alerts
from moedinha.services.distribution import get_active_distribution
from moedinha.services.metrics import compute_monthly_metrics, pending_stats
from moedinha.utils.dates import month_start


logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    month: date
    snapshots_updated: int = 0
    alerts_emitted: int = 0
    failed_orgs: list[int] = field(default_factory=list)


def _process_org(db: Session, ctx: RequestContext, month: date) -> tuple[bool, int]:
    metrics = compute_monthly_metrics(db, ctx, month)
    if metrics is None:
        return False, 0

    active = get_active_distribution(db, ctx.org_id)
    bucket_names = {bucket.id: bucket.name for bucket in active.buckets} if active else {}
    stats = pending_stats(db, ctx.org_id, month)
    emitted = generate_alerts(
        db,
        ctx,
        month,
        metrics,
        bucket_names,
        pending_count=stats.pending_count,
        pending_pct=stats.pending_pct,
    )
    return True, emitted


def run_snapshot_alerts(db: Session, clock: Clock = system_clock) -> BatchSummary:
    """Recompute the current month's snapshot and alerts for every organization.

    Orgs are handled one at a time and committed individually. A failure rolls back
    only that org, gets logged, and the loop moves on.
    """
    month = month_start(clock().date())
    summary = BatchSummary(month=month)
    org_ids = list(db.scalars(select(Org.id).order_by(Org.id)).all())

    for org_id in org_ids:
        ctx = RequestContext(user_id=None, org_id=org_id, clock=clock)
        try:
            updated, emitted = _process_org(db, ctx, month)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("snapshot/alerts failed for org %s", org_id)
            summary.failed_orgs.append(org_id)
            continue
        if updated:
            summary.snapshots_updated += 1
        summary.alerts_emitted += emitted

    logger.info(
        "snapshot/alerts month=%s orgs=%s snapshots=%s alerts=%s failed=%s",
        month.isoformat(),
        len(org_ids),
        summary.snapshots_updated,
        summary.alerts_emitted,
        len(summary.failed_orgs),
    )
    return summary
