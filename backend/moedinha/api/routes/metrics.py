from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from moedinha.api.deps import get_db, get_request_context
from moedinha.core.context import RequestContext
from moedinha.schemas.metrics import BucketMetricsOut, MonthlyMetricsOut, SnapshotOut
from moedinha.services.alerts import generate_alerts
from moedinha.services.distribution import get_active_distribution
from moedinha.services.metrics import compute_monthly_metrics, get_snapshot, pending_stats


router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.post("/{month}", response_model=MonthlyMetricsOut)
def recompute_metrics(
    month: date,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    metrics = compute_monthly_metrics(db, ctx, month)
    if metrics is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Nenhuma distribuição com buckets configurada.",
        )
    active = get_active_distribution(db, ctx.org_id)
    bucket_names = {bucket.id: bucket.name for bucket in active.buckets} if active else {}
    stats = pending_stats(db, ctx.org_id, metrics.month)
    emitted = generate_alerts(
        db,
        ctx,
        metrics.month,
        metrics,
        bucket_names,
        pending_count=stats.pending_count,
        pending_pct=stats.pending_pct,
    )
    db.commit()
    return MonthlyMetricsOut(
        month=metrics.month,
        base_income=metrics.base_income,
        base_income_mode=metrics.base_income_mode,
        bucket_data=[BucketMetricsOut(**row.__dict__) for row in metrics.bucket_data],
        day_ratio=metrics.day_ratio,
        total_spend=metrics.total_spend,
        total_budget=metrics.total_budget,
        alerts_emitted=emitted,
    )


@router.get("/{month}", response_model=SnapshotOut)
def read_snapshot(
    month: date,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    snapshot = get_snapshot(db, ctx, month)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Snapshot não encontrado.")
    return snapshot
